import dataclasses
import typing


REST_SYMBOLS = ("-", "=")
SUSTAIN_SYMBOL = "="

DIGITS = "0123456789"

# Step heads accepted by parse(strict=True), besides digits.
STRICT_SYMBOLS = ("-", "=", "x", "X", ".")


class MalformedNotationError(Exception):
	pass


class EmptyPatternError(Exception):
	pass


@dataclasses.dataclass(frozen=True)
class RhythmStep:

	"""
	One note or rest parsed from rhythm notation.

	``pitch_offset`` is the semitone offset from the pattern's base pitch,
	or ``None`` for a rest.  ``sustain`` is the number of step slots occupied.
	"""

	pitch_offset: typing.Optional[int]
	sustain: int = 1

	@property
	def is_rest (self) -> bool:

		return self.pitch_offset is None


class RhythmPattern:

	"""
	A fixed sequence of rhythm steps, addressed circularly.

	Indexing wraps around the pattern length, so ``pattern[i]`` and
	``pattern[i + len(pattern)]`` are always the same step::

		pattern = parse(60, "0 4 7=")
		pattern[2]    # (67, 2)
		pattern[3]    # (60, 1)
	"""

	def __init__ (self, base_pitch: int, steps: typing.Iterable[RhythmStep]) -> None:

		self.base_pitch = base_pitch
		self.steps: typing.Tuple[RhythmStep, ...] = tuple(steps)

	def __len__ (self) -> int:

		return len(self.steps)

	def __eq__ (self, other: object) -> bool:

		if not isinstance(other, RhythmPattern):
			return NotImplemented

		return self.base_pitch == other.base_pitch and self.steps == other.steps

	def __hash__ (self) -> int:

		return hash((self.base_pitch, self.steps))

	def __repr__ (self) -> str:

		return f"RhythmPattern(base_pitch={self.base_pitch!r}, steps={list(self.steps)!r})"

	def __getitem__ (self, index: int) -> typing.Tuple[typing.Optional[int], int]:

		return self.lookup(index)


	@property
	def total_slots (self) -> int:

		"""Total number of step slots, counting sustains."""

		return sum(step.sustain for step in self.steps)


	def lookup (self, index: int) -> typing.Tuple[typing.Optional[int], int]:

		"""
		Return ``(note, sustain)`` for the step at ``index``, wrapping around.

		``note`` is ``base_pitch + pitch_offset``, or ``None`` for a rest.

		Raises:
			EmptyPatternError: If the pattern has no steps.
		"""

		if not self.steps:
			raise EmptyPatternError("Cannot index a pattern with no steps")

		if index < 0:
			raise IndexError("Pattern index must be non-negative")

		step = self.steps[index % len(self.steps)]

		if step.pitch_offset is None:
			return None, step.sustain

		return self.base_pitch + step.pitch_offset, step.sustain


def parse (base_pitch: int, notation: str, strict: bool = False) -> RhythmPattern:

	"""
	Parse a rhythm notation string into a :class:`RhythmPattern`.

	Every character is one step, except sustain markers which lengthen the
	step before them.  Whitespace is ignored entirely and only serves to make
	a phrase readable.

	**Syntax:**
	- `0`-`9`: A note, offset from ``base_pitch`` by that many semitones.
	  Each digit is its own step, so `42` is two notes, not note 42.
	- `-`: A rest.
	- `=`: Sustain - extends the previous step by one slot.  At the start of
	  a phrase, where there is nothing to extend, it is a rest.
	- Anything else: A note at ``base_pitch`` (offset 0).

	Parameters:
		base_pitch: MIDI note that offset 0 maps to.
		notation: The string to parse.
		strict: When True, reject step characters other than digits,
			`-`, `=`, `x`, `X` and `.` instead of treating them as offset 0.

	Returns:
		A pattern with one step per note or rest.  An empty string gives an
		empty pattern.

	Example:
		```python
		# A rising figure with a held last note and a rest
		parse(60, "0 2 4 7== -")
		```
	"""

	symbols = "".join(notation.split())

	steps: typing.List[RhythmStep] = []
	position = 0

	while position < len(symbols):

		head = symbols[position]

		if strict and head not in DIGITS and head not in STRICT_SYMBOLS:
			raise MalformedNotationError(f"Unexpected symbol {head!r} in rhythm notation {notation!r}")

		if head in REST_SYMBOLS:
			offset: typing.Optional[int] = None
		elif head in DIGITS:
			offset = int(head)
		else:
			offset = 0

		sustain = 1
		position += 1

		while position < len(symbols) and symbols[position] == SUSTAIN_SYMBOL:
			sustain += 1
			position += 1

		steps.append(RhythmStep(offset, sustain))

	return RhythmPattern(base_pitch, steps)
