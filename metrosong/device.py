import logging
import typing

import mido

import metrosong.constants


logger = logging.getLogger(__name__)


class NoOutputDestinationError(Exception):
	pass


@typing.runtime_checkable
class OutputDevice (typing.Protocol):

	"""
	Protocol for anything the players can send notes to.
	"""

	def note_on (self, channel: int, note: int, velocity: int = metrosong.constants.DEFAULT_VELOCITY) -> None:
		...

	def note_off (self, channel: int, note: int, velocity: int = metrosong.constants.DEFAULT_VELOCITY) -> None:
		...

	def program_change (self, channel: int, preset: int) -> None:
		...


def _prompt_for_output (outputs: typing.List[str]) -> str:

	"""Ask on the console which of several ports to use."""

	for number, name in enumerate(outputs, 1):
		print(f"  {number}. {name}")

	while True:
		try:
			choice = int(input(f"MIDI output (1-{len(outputs)}): "))
		except ValueError:
			continue
		except EOFError:
			raise NoOutputDestinationError("No MIDI output device selected")

		if 1 <= choice <= len(outputs):
			return outputs[choice - 1]


def open_output (device_name: typing.Optional[str] = None) -> typing.Tuple[str, typing.Any]:

	"""
	Open ``device_name``, the only available port, or one picked on the console.

	Raises:
		NoOutputDestinationError: No port exists, the named one is missing,
			or the console prompt hit end of input.
	"""

	outputs = mido.get_output_names()

	if not outputs:
		raise NoOutputDestinationError("No MIDI output devices found")

	if device_name is None:
		device_name = outputs[0] if len(outputs) == 1 else _prompt_for_output(outputs)

	elif device_name not in outputs:
		raise NoOutputDestinationError(f"MIDI output {device_name!r} not found (available: {outputs})")

	logger.info(f"Opening MIDI output '{device_name}'")

	return device_name, mido.open_output(device_name)


class LiveMidi:

	"""
	An :class:`OutputDevice` that sends to a real MIDI port through mido.

	Values are passed straight through; mido rejects anything outside the
	MIDI ranges (channel 0-15, data bytes 0-127) with a ``ValueError``.
	"""

	def __init__ (self, device_name: typing.Optional[str] = None, port: typing.Optional[typing.Any] = None) -> None:

		"""
		Parameters:
			device_name: Output port name.  When omitted, auto-discovers a port.
			port: An already open mido output port; skips discovery.

		Raises:
			NoOutputDestinationError: No usable output port.
		"""

		if port is None:
			device_name, port = open_output(device_name)

		self.device_name = device_name
		self.port = port

	def __enter__ (self) -> "LiveMidi":

		return self

	def __exit__ (self, *exc_info: typing.Any) -> None:

		self.close()


	def note_on (self, channel: int, note: int, velocity: int = metrosong.constants.DEFAULT_VELOCITY) -> None:

		self._send(mido.Message('note_on', channel=channel, note=note, velocity=velocity))

	def note_off (self, channel: int, note: int, velocity: int = metrosong.constants.DEFAULT_VELOCITY) -> None:

		self._send(mido.Message('note_off', channel=channel, note=note, velocity=velocity))

	def program_change (self, channel: int, preset: int) -> None:

		self._send(mido.Message('program_change', channel=channel, program=preset))


	def close (self) -> None:

		"""Silence every channel and release the port."""

		if self.port is None:
			return

		try:
			self.port.panic()
		except Exception:
			logger.exception("MIDI panic failed (device may be disconnected)")

		self.port.close()
		self.port = None

		logger.info(f"Closed MIDI output: {self.device_name}")

	def _send (self, message: mido.Message) -> None:

		if self.port is None:
			raise RuntimeError("MIDI output is closed")

		self.port.send(message)
