import logging
import os
import time
import typing

import yaml

import metrosong.deadline_queue
import metrosong.device
import metrosong.sequencer


logger = logging.getLogger(__name__)

DEFAULT_CONFIG: typing.Dict[str, typing.Any] = {
	'midi': {'device_name': None},
	'player': {'mode': 'metronome', 'bpm': 120, 'notation': '0 2 4 5 7 5 4 2 0 -', 'duration': 10},
	'logging': {'level': 'INFO'},
}


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file, filling gaps from the defaults.
	"""

	config: typing.Dict[str, typing.Any] = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return config

	with open(config_path, 'r') as f:
		loaded = yaml.safe_load(f) or {}

	for section, values in loaded.items():
		if isinstance(values, dict):
			config.setdefault(section, {}).update(values)
		else:
			config[section] = values

	return config


def main (config_path: str = 'config.yaml') -> None:

	"""
	Main entry point: run a metronome or a song player from config.
	"""

	config = load_config(config_path)

	logging.basicConfig(level=config['logging'].get('level', 'INFO'))

	logger.info("Metrosong starting...")

	registry = metrosong.deadline_queue.default_registry()
	device = metrosong.device.LiveMidi(config['midi'].get('device_name'))

	player_config = config['player']
	bpm = player_config.get('bpm', 120)

	try:
		if player_config.get('mode') == 'song':
			player = metrosong.sequencer.SongPlayer(device, bpm, player_config.get('notation', ''), registry)
			player.wait()
			# Let the last note off fire before the port closes.
			time.sleep(max(0.0, player.note_end - registry.clock()) + player.queue.resolution)

		else:
			metrosong.sequencer.Metronome(device, bpm, registry)
			time.sleep(player_config.get('duration', 10))

	except KeyboardInterrupt:
		logger.info("Stopping...")

	finally:
		registry.close()
		device.close()


if __name__ == "__main__":
	main()
