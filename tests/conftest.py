import typing

import mido
import pytest

import metrosong.deadline_queue


class FakeClock:

	"""Manually advanced wall clock for deterministic queue tests."""

	def __init__ (self, now: float = 1000.0) -> None:

		self.now = now

	def __call__ (self) -> float:

		return self.now

	def advance (self, seconds: float) -> float:

		"""Move time forward and return the new time."""

		self.now += seconds
		return self.now


class RecordingDevice:

	"""Output device stub that records every call as a tuple."""

	def __init__ (self) -> None:

		self.calls: typing.List[typing.Tuple[typing.Any, ...]] = []

	def note_on (self, channel: int, note: int, velocity: int = 64) -> None:

		self.calls.append(('note_on', channel, note, velocity))

	def note_off (self, channel: int, note: int, velocity: int = 64) -> None:

		self.calls.append(('note_off', channel, note, velocity))

	def program_change (self, channel: int, preset: int) -> None:

		self.calls.append(('program_change', channel, preset))

	def notes_on (self) -> typing.List[int]:

		"""Return the note numbers of every note_on, in order."""

		return [call[2] for call in self.calls if call[0] == 'note_on']


class FakeMidiOut:

	"""Minimal MIDI output stub that keeps sent messages."""

	def __init__ (self) -> None:

		self.sent: typing.List[mido.Message] = []
		self.closed = False
		self.panicked = False

	def send (self, message: mido.Message) -> None:

		self.sent.append(message)

	def close (self) -> None:

		self.closed = True

	def panic (self) -> None:

		self.panicked = True


def run_until (clock: FakeClock, queue: metrosong.deadline_queue.DeadlineQueue, end: float) -> None:

	"""Tick the queue at its resolution until the fake clock reaches ``end``."""

	queue.dispatch()

	while clock.now < end:
		clock.advance(queue.resolution)
		queue.dispatch()


@pytest.fixture
def clock () -> FakeClock:

	"""A fake clock starting at a fixed epoch time."""

	return FakeClock()


@pytest.fixture
def device () -> RecordingDevice:

	"""A device that records note calls."""

	return RecordingDevice()


@pytest.fixture
def registry (clock: FakeClock) -> typing.Iterator[metrosong.deadline_queue.QueueRegistry]:

	"""An isolated registry on the fake clock whose queues are ticked by hand."""

	registry = metrosong.deadline_queue.QueueRegistry(clock=clock, autostart=False)
	yield registry
	registry.close()


@pytest.fixture
def live_registry () -> typing.Iterator[metrosong.deadline_queue.QueueRegistry]:

	"""An isolated registry on the real clock with running dispatch threads."""

	registry = metrosong.deadline_queue.QueueRegistry()
	yield registry
	registry.close()


@pytest.fixture
def fake_output () -> FakeMidiOut:

	"""The port returned by the patched mido.open_output."""

	return FakeMidiOut()


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch, fake_output: FakeMidiOut) -> FakeMidiOut:

	"""Patch mido so port discovery finds one dummy output."""

	monkeypatch.setattr(mido, "get_output_names", lambda: ["Dummy MIDI"])
	monkeypatch.setattr(mido, "open_output", lambda name: fake_output)

	return fake_output
