import logging
import time

import metrosong

logging.basicConfig(level=logging.INFO)

registry = metrosong.QueueRegistry()
midi = metrosong.LiveMidi()

# Acoustic bass on channel 0.
midi.program_change(0, 32)

# Digits are semitones above middle C, "-" rests, "=" holds the note a beat longer.
# The final step is read but not played, so the closing rest marks the end.
twinkle = "0 0 7 7 9 9 7= 5 5 4 4 2 2 0= -"

player = metrosong.SongPlayer(midi, 140, twinkle, registry)
player.on_event("note", lambda note, length, start: print(f"note {note} for {length:.2f}s"))

try:
	player.wait()
	# Hold the port open until the final (possibly sustained) note off.
	time.sleep(max(0.0, player.note_end - registry.clock()) + player.queue.resolution)
finally:
	registry.close()
	midi.close()
