import logging
import threading
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	A simple thread-safe event emitter for player notifications.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}
		self._lock = threading.Lock()


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""
		Register a callback for an event name.
		"""

		with self._lock:
			if event_name not in self._listeners:
				self._listeners[event_name] = []

			self._listeners[event_name].append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		with self._lock:
			if event_name not in self._listeners or callback not in self._listeners[event_name]:
				raise ValueError(f"Callback not registered for event {event_name!r}")

			self._listeners[event_name].remove(callback)


	def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Emit an event and call every listener immediately, in registration order.

		Listeners run on the emitting thread (usually a queue's dispatch thread),
		so they should return quickly.
		"""

		with self._lock:
			listeners = list(self._listeners.get(event_name, []))

		for callback in listeners:
			callback(*args, **kwargs)
