"""Resolution-keyed deadline queues.

A :class:`DeadlineQueue` holds callbacks that should run at an absolute
wall-clock time.  A background daemon thread polls the queue every
``resolution`` seconds and fires every callback whose deadline has passed,
passing it the time of the tick that fired it.

Polling is coarse on purpose.  A callback that needs fine timing re-arms
itself from inside its own invocation with a precise future deadline, so the
loop only has to be finer than the musical interval being sequenced (the
players use a tenth of a beat), not finer than audio resolution.

Queues are handed out by a :class:`QueueRegistry`, which keeps exactly one
queue per resolution::

	registry = QueueRegistry()
	queue = registry.get(0.05)
	queue.schedule(time.time() + 1.0, lambda fired_at: print(fired_at))

Entries cannot be cancelled once scheduled.
"""

import dataclasses
import datetime
import logging
import threading
import time
import typing


logger = logging.getLogger(__name__)

Clock = typing.Callable[[], float]
Deadline = typing.Union[float, int, datetime.datetime]
Action = typing.Callable[[float], typing.Any]


@dataclasses.dataclass
class ScheduledCallback:

	"""
	A callback waiting for its deadline (epoch seconds).
	"""

	deadline: float
	action: Action


def _to_epoch (deadline: Deadline) -> float:

	"""Normalise a float or datetime deadline to epoch seconds."""

	if isinstance(deadline, datetime.datetime):
		return deadline.timestamp()

	if isinstance(deadline, (int, float)) and not isinstance(deadline, bool):
		return float(deadline)

	raise TypeError(f"Unsupported deadline type: {type(deadline).__name__}")


class DeadlineQueue:

	"""
	An unordered set of pending callbacks and the loop that dispatches them.
	"""

	def __init__ (self, resolution: float, clock: Clock = time.time) -> None:

		"""
		Parameters:
			resolution: Seconds between dispatch polls.
			clock: Returns the current wall-clock time in epoch seconds.
		"""

		if resolution <= 0:
			raise ValueError("Resolution must be positive")

		self.resolution = resolution
		self.clock = clock

		self._pending: typing.List[ScheduledCallback] = []
		self._lock = threading.Lock()
		self._thread: typing.Optional[threading.Thread] = None
		self._stop_event = threading.Event()

	def __len__ (self) -> int:

		with self._lock:
			return len(self._pending)

	def __repr__ (self) -> str:

		return f"DeadlineQueue(resolution={self.resolution!r}, pending={len(self)})"


	@property
	def running (self) -> bool:

		"""True while a dispatch thread is alive and has not been asked to stop."""

		return (
			self._thread is not None
			and self._thread.is_alive()
			and not self._stop_event.is_set()
		)


	def schedule (self, deadline: Deadline, action: Action) -> None:

		"""
		Add a callback to fire at ``deadline``.

		``deadline`` is epoch seconds or a ``datetime.datetime``.  A deadline
		in the past is accepted and fires on the next poll.
		"""

		entry = ScheduledCallback(deadline=_to_epoch(deadline), action=action)

		with self._lock:
			self._pending.append(entry)


	def dispatch (self, now: typing.Optional[float] = None) -> int:

		"""
		Run one tick: fire every callback whose deadline is at or before ``now``.

		The clock is read once per tick and that same time is passed to every
		callback fired.  Callbacks run outside the lock, so they may schedule
		further work on this queue; anything they add waits for the next tick.

		Returns:
			The number of callbacks fired.
		"""

		if now is None:
			now = self.clock()

		with self._lock:
			due = [entry for entry in self._pending if entry.deadline <= now]
			self._pending = [entry for entry in self._pending if entry.deadline > now]

		for entry in due:
			try:
				entry.action(now)
			except Exception:
				logger.exception(f"Scheduled callback {entry.action!r} failed (deadline {entry.deadline:.4f})")

		return len(due)


	def start (self) -> None:

		"""Start the background dispatch thread.  A second call is a no-op."""

		if self.running:
			return

		# A thread asked to stop may still be finishing its tick.
		previous = self._thread

		if previous is not None and previous.is_alive() and previous is not threading.current_thread():
			previous.join()

		# Each thread gets its own stop event, so a stopped loop can never resume.
		self._stop_event = threading.Event()
		self._thread = threading.Thread(
			target = self._run_loop,
			args   = (self._stop_event,),
			name   = f"metrosong-queue-{self.resolution:g}",
			daemon = True,
		)
		self._thread.start()

		logger.info(f"Deadline queue started (resolution {self.resolution:g}s)")

	def stop (self, timeout: typing.Optional[float] = None) -> None:

		"""
		Ask the dispatch thread to exit after its current tick.

		Pending callbacks are kept; calling :meth:`start` again resumes them.
		"""

		self._stop_event.set()

		if self._thread is not None and self._thread is not threading.current_thread():
			self._thread.join(timeout)

		logger.info(f"Deadline queue stopped (resolution {self.resolution:g}s)")

	def _run_loop (self, stop_event: threading.Event) -> None:

		while not stop_event.is_set():
			self.dispatch()
			stop_event.wait(self.resolution)


class QueueRegistry:

	"""
	Hands out one shared :class:`DeadlineQueue` per resolution.

	Players take a registry in their constructor, so a test can build an
	isolated registry with a fake clock and drive the queues by hand::

		registry = QueueRegistry(clock=fake_clock, autostart=False)
		queue = registry.get(0.05)
		queue.dispatch()
	"""

	def __init__ (self, clock: Clock = time.time, autostart: bool = True) -> None:

		self.clock = clock
		self.autostart = autostart

		self._queues: typing.Dict[float, DeadlineQueue] = {}
		self._lock = threading.Lock()

	def __len__ (self) -> int:

		with self._lock:
			return len(self._queues)

	def __contains__ (self, resolution: float) -> bool:

		with self._lock:
			return resolution in self._queues


	def get (self, resolution: float) -> DeadlineQueue:

		"""
		Return the queue for ``resolution``, creating it on first use.

		With ``autostart`` the queue's dispatch thread is (re)started if it is
		not running, so a registry can be reused after :meth:`close`.
		"""

		with self._lock:

			queue = self._queues.get(resolution)

			if queue is None:
				queue = DeadlineQueue(resolution, clock=self.clock)
				self._queues[resolution] = queue

			if self.autostart and not queue.running:
				queue.start()

		return queue

	def close (self) -> None:

		"""Stop every dispatch thread this registry started."""

		with self._lock:
			queues = list(self._queues.values())

		for queue in queues:
			if queue.running:
				queue.stop()


_default_registry: typing.Optional[QueueRegistry] = None
_default_lock = threading.Lock()


def default_registry () -> QueueRegistry:

	"""
	Return the process-wide registry, creating it on first call.

	Library code should accept a registry argument instead; this exists for
	the command line entry point and the examples.
	"""

	global _default_registry

	with _default_lock:
		if _default_registry is None:
			_default_registry = QueueRegistry()

		return _default_registry
