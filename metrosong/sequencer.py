"""Song player and metronome.

Both players drive themselves from a :class:`~metrosong.deadline_queue.DeadlineQueue`.
Each time a step fires, the player schedules its own next step at
``fired_at + interval``, where ``fired_at`` is the time the queue actually ran
the callback.  No thread sleeps between notes; the queue's polling loop is
the only clock.

The queue resolution is a tenth of the beat interval, so onsets land within
about 10% of a beat of their target.
"""

import logging
import threading
import typing

import metrosong.constants
import metrosong.deadline_queue
import metrosong.device
import metrosong.event_emitter
import metrosong.rhythm


logger = logging.getLogger(__name__)


def _beat_interval (bpm: float) -> float:

	"""Seconds per beat."""

	if bpm <= 0:
		raise ValueError("BPM must be positive")

	return metrosong.constants.SECONDS_PER_MINUTE / bpm


def play_note (
	device: metrosong.device.OutputDevice,
	queue: metrosong.deadline_queue.DeadlineQueue,
	channel: int,
	note: int,
	duration: float,
	start: float,
	velocity: int = metrosong.constants.DEFAULT_VELOCITY
) -> None:

	"""
	Schedule a note on at ``start`` and the matching note off ``duration`` seconds later.

	A non-positive duration is clamped so the note off never precedes the note on.
	"""

	end = start + max(duration, 0.0)

	queue.schedule(start, lambda fired_at: device.note_on(channel, note, velocity))
	queue.schedule(end, lambda fired_at: device.note_off(channel, note, velocity))


class SongPlayer:

	"""
	Plays a rhythm pattern once through, one step per beat.

	Each step is held for ``sustain`` beats minus a 10% gap so consecutive
	notes stay separate.  Rests advance the step without sending anything.

	The player stops when its step counter reaches the pattern length.  The
	counter is advanced before that check, so the last step of the pattern
	is read but never played: a pattern of N steps sounds N-1 of them.

	``note_end`` is the time the last scheduled note off falls due, so a
	caller can keep the device open until the final note has finished.

	Example::

		registry = metrosong.deadline_queue.QueueRegistry()
		player = SongPlayer(metrosong.device.LiveMidi(), 120, "0 2 4 5 7 -", registry)
		player.wait()
	"""

	def __init__ (
		self,
		device: typing.Optional[metrosong.device.OutputDevice],
		bpm: float,
		notation: str,
		registry: typing.Optional[metrosong.deadline_queue.QueueRegistry] = None,
		base_pitch: int = metrosong.constants.BASE_PITCH,
		channel: int = metrosong.constants.DEFAULT_CHANNEL,
		velocity: int = metrosong.constants.DEFAULT_VELOCITY
	) -> None:

		"""
		Parse the pattern, obtain the queue and play the first step immediately.

		Parameters:
			device: Where notes are sent.  When None, a
				:class:`~metrosong.device.LiveMidi` port is opened.
			bpm: Tempo in beats per minute; one step per beat.
			notation: Rhythm notation, see :func:`metrosong.rhythm.parse`.
			registry: Source of the shared deadline queue.  Defaults to the
				process-wide registry.

		Raises:
			ValueError: If ``bpm`` is not positive.
			EmptyPatternError: If ``notation`` contains no steps.
			NoOutputDestinationError: If no device was given and none can be opened.
		"""

		self.interval = _beat_interval(bpm)
		self.pattern = metrosong.rhythm.parse(base_pitch, notation)

		if not len(self.pattern):
			raise metrosong.rhythm.EmptyPatternError(f"Rhythm notation {notation!r} has no steps")

		if device is None:
			device = metrosong.device.LiveMidi()

		if registry is None:
			registry = metrosong.deadline_queue.default_registry()

		self.device = device
		self.channel = channel
		self.velocity = velocity
		self.queue = registry.get(self.interval / metrosong.constants.RESOLUTION_DIVISOR)
		self.events = metrosong.event_emitter.EventEmitter()

		self.step_index = 0
		self.note_end = 0.0
		self.running = True
		self._stopped = threading.Event()

		logger.info(f"Song player started: {len(self.pattern)} steps at {bpm:g} BPM")

		self.play(registry.clock())


	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for ``"step"``, ``"note"`` or ``"stop"``.
		"""

		self.events.on(event_name, callback)


	def play (self, time: float) -> None:

		"""
		Play the current step at ``time`` and schedule the next one.
		"""

		if not self.running:
			return

		note, duration = self.pattern[self.step_index]
		self.step_index += 1

		if self.step_index >= len(self.pattern):
			self._stop()
			return

		# Re-arm first so a failing device or listener cannot stall the song.
		self.queue.schedule(time + self.interval, self.play)

		self.events.emit("step", self.step_index - 1, note, duration)

		length = self.interval * duration - self.interval * metrosong.constants.NOTE_GAP_FRACTION

		if note is not None:
			logger.debug(f"Step {self.step_index - 1}: note {note} for {length:.3f}s at {time:.3f}")
			play_note(self.device, self.queue, self.channel, note, length, time, self.velocity)
			self.note_end = max(self.note_end, time + max(length, 0.0))
			self.events.emit("note", note, length, time)


	def wait (self, timeout: typing.Optional[float] = None) -> bool:

		"""
		Block until the player stops.  Returns False if ``timeout`` expired first.
		"""

		return self._stopped.wait(timeout)

	def _stop (self) -> None:

		self.running = False
		self._stopped.set()

		logger.info(f"Song player finished after {self.step_index} steps")

		self.events.emit("stop", self.step_index)


class Metronome:

	"""
	Clicks a fixed note on every beat, forever.

	Each click re-arms the next one before it sounds, so a slow device call
	never delays the following beat.  The click itself is played slightly in
	the future to absorb dispatch jitter.
	"""

	def __init__ (
		self,
		device: typing.Optional[metrosong.device.OutputDevice],
		bpm: float,
		registry: typing.Optional[metrosong.deadline_queue.QueueRegistry] = None,
		note: int = metrosong.constants.METRONOME_NOTE,
		channel: int = metrosong.constants.DEFAULT_CHANNEL
	) -> None:

		"""
		Raises:
			ValueError: If ``bpm`` is not positive.
			NoOutputDestinationError: If no device was given and none can be opened.
		"""

		self.interval = _beat_interval(bpm)

		if device is None:
			device = metrosong.device.LiveMidi()

		if registry is None:
			registry = metrosong.deadline_queue.default_registry()

		self.device = device
		self.note = note
		self.channel = channel
		self.clock = registry.clock
		self.queue = registry.get(self.interval / metrosong.constants.RESOLUTION_DIVISOR)
		self.events = metrosong.event_emitter.EventEmitter()
		self.bang_count = 0

		logger.info(f"Metronome started at {bpm:g} BPM")

		self._register_next_bang(self.clock())


	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for ``"bang"``.
		"""

		self.events.on(event_name, callback)


	def _register_next_bang (self, time: float) -> None:

		self.queue.schedule(time, self._on_bang)

	def _on_bang (self, fired_at: float) -> None:

		self._register_next_bang(fired_at + self.interval)
		self.bang(fired_at)

	def bang (self, fired_at: float) -> None:

		"""
		Play one click, starting a short lead time after the current clock time.
		"""

		start = self.clock() + metrosong.constants.METRONOME_LEAD_TIME

		play_note(
			self.device,
			self.queue,
			self.channel,
			self.note,
			metrosong.constants.METRONOME_DURATION,
			start
		)

		self.bang_count += 1
		self.events.emit("bang", self.bang_count, fired_at)
