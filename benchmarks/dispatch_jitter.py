"""Deadline queue dispatch jitter benchmark.

Runs a self-re-arming callback on a deadline queue, the same way the players
drive themselves, and measures how late each callback fires relative to the
deadline it was scheduled for.  No MIDI device is needed.

Usage:
    python benchmarks/dispatch_jitter.py [--bpm BPM] [--beats N]
                                         [--divisor D] [--compare]

Options:
    --bpm BPM           Tempo in BPM (default: 120)
    --beats N           Number of beats to measure (default: 64)
    --divisor D         Polls per beat; resolution = beat / D (default: 10)
    --compare           Run divisors 10 and 100 and print both reports
"""

import argparse
import logging
import statistics
import threading

# Suppress queue logging so the report is readable.
logging.basicConfig(level=logging.ERROR)

import metrosong.constants
import metrosong.deadline_queue


def _run_benchmark (bpm: float, beats: int, divisor: int) -> list[float]:

	"""Fire *beats* re-armed callbacks and return per-beat lateness (seconds)."""

	interval = metrosong.constants.SECONDS_PER_MINUTE / bpm
	registry = metrosong.deadline_queue.QueueRegistry()
	queue = registry.get(interval / divisor)

	lateness: list[float] = []
	done = threading.Event()

	def _arm (deadline: float) -> None:

		def _fire (fired_at: float) -> None:
			lateness.append(fired_at - deadline)
			if len(lateness) >= beats:
				done.set()
				return
			_arm(fired_at + interval)

		queue.schedule(deadline, _fire)

	_arm(registry.clock())

	done.wait(interval * beats * 2 + 2.0)
	registry.close()

	return lateness


def _print_report (lateness: list[float], bpm: float, divisor: int) -> None:

	if not lateness:
		print("No timing data collected.")
		return

	ms = [late * 1000 for late in lateness]

	interval_ms = metrosong.constants.SECONDS_PER_MINUTE / bpm * 1000
	resolution_ms = interval_ms / divisor

	print(f"\nDispatch Jitter Benchmark: {len(ms)} beats at {bpm:.0f} BPM (resolution 1/{divisor} beat)")
	print(f"{'─' * 62}")
	print(f"  Beat interval   : {interval_ms:.3f} ms")
	print(f"  Resolution      : {resolution_ms:.3f} ms")
	print(f"{'─' * 62}")
	print(f"  Mean lateness   : {statistics.mean(ms):>8.3f} ms")
	print(f"  Median lateness : {statistics.median(ms):>8.3f} ms")
	print(f"  Std deviation   : {statistics.stdev(ms) if len(ms) > 1 else 0.0:>8.3f} ms")
	print(f"  P95 lateness    : {sorted(ms)[int(len(ms) * 0.95)]:>8.3f} ms")
	print(f"  Max lateness    : {max(ms):>8.3f} ms")
	print(f"  Within bound    : {sum(1 for m in ms if m < resolution_ms)}/{len(ms)}")
	print(f"{'─' * 62}")
	print()


def main () -> None:

	parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
	parser.add_argument("--bpm",     type=float, default=120, help="Tempo in BPM (default: 120)")
	parser.add_argument("--beats",   type=int,   default=64,  help="Beats to measure (default: 64)")
	parser.add_argument("--divisor", type=int,   default=metrosong.constants.RESOLUTION_DIVISOR, help="Polls per beat (default: 10)")
	parser.add_argument("--compare", action="store_true",     help="Run divisors 10 and 100 and compare")
	args = parser.parse_args()

	divisors = [10, 100] if args.compare else [args.divisor]

	for divisor in divisors:
		print(f"\nRunning with resolution 1/{divisor} beat ...")
		_print_report(_run_benchmark(args.bpm, args.beats, divisor), args.bpm, divisor)


if __name__ == "__main__":
	main()
