"""Timing and MIDI constants.

Tempo is expressed in beats per minute and every derived interval is in
seconds of wall-clock time:

- `SECONDS_PER_MINUTE / bpm` is one beat (the player's step interval).
- Each player polls its deadline queue `RESOLUTION_DIVISOR` times per beat.
- `NOTE_GAP_FRACTION` of a beat is left silent before the next onset, so
  consecutive notes are separated rather than legato.
"""

SECONDS_PER_MINUTE = 60.0

# Queue resolution is the step interval divided by this.
RESOLUTION_DIVISOR = 10

NOTE_GAP_FRACTION = 0.10

# Middle C
BASE_PITCH = 60

DEFAULT_CHANNEL = 0
DEFAULT_VELOCITY = 64

# Metronome click
METRONOME_NOTE = 84
METRONOME_DURATION = 0.1
METRONOME_LEAD_TIME = 0.2
