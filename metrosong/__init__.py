"""
Metrosong - a tempo-synced MIDI song player and metronome for Python.

Songs are written in a compact rhythm notation, one character per beat:

- `0`-`9` play a note that many semitones above middle C.
- `-` is a rest.
- `=` holds the previous note for one more beat.

Whitespace is ignored, so `"0 2 4= -"` and `"024=-"` are the same phrase.

Timing comes from a shared deadline queue.  A background thread polls it at
a tenth of the beat interval and fires every callback that has come due;
each player re-arms its next step from inside the callback that fired, using
the actual fire time, so the stream of notes sustains and corrects itself.

Minimal example:

    ```python
    import metrosong

    registry = metrosong.QueueRegistry()
    player = metrosong.SongPlayer(metrosong.LiveMidi(), 120, "0 2 4 5 7== -", registry)
    player.wait()
    ```

Package-level exports: ``LiveMidi``, ``Metronome``, ``QueueRegistry``,
``SongPlayer``, ``parse``.
"""

import metrosong.deadline_queue
import metrosong.device
import metrosong.rhythm
import metrosong.sequencer


LiveMidi = metrosong.device.LiveMidi
Metronome = metrosong.sequencer.Metronome
QueueRegistry = metrosong.deadline_queue.QueueRegistry
SongPlayer = metrosong.sequencer.SongPlayer
parse = metrosong.rhythm.parse
