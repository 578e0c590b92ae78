import logging
import time

import metrosong

logging.basicConfig(level=logging.INFO)

registry = metrosong.QueueRegistry()

# Clicks on the first available MIDI output, 160 beats per minute.
metronome = metrosong.Metronome(None, 160, registry)
metronome.on_event("bang", lambda count, fired_at: print(f"bang {count}"))

try:
	time.sleep(10)
finally:
	registry.close()
	metronome.device.close()
