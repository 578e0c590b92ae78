import datetime
import logging
import threading
import time
import typing

import pytest

import conftest
import metrosong.deadline_queue


def test_registry_returns_same_queue_for_same_resolution (registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""get() with an equal resolution returns the identical instance."""

	assert registry.get(0.05) is registry.get(0.05)
	assert len(registry) == 1
	assert 0.05 in registry


def test_registry_returns_distinct_queues_for_distinct_resolutions (registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Different resolutions get different queues."""

	fine = registry.get(0.01)
	coarse = registry.get(0.1)

	assert fine is not coarse
	assert fine.resolution == 0.01
	assert coarse.resolution == 0.1


def test_registries_are_isolated (clock: conftest.FakeClock) -> None:

	"""Two registries never share a queue."""

	first = metrosong.deadline_queue.QueueRegistry(clock=clock, autostart=False)
	second = metrosong.deadline_queue.QueueRegistry(clock=clock, autostart=False)

	assert first.get(0.05) is not second.get(0.05)


def test_default_registry_is_shared () -> None:

	"""default_registry() always returns the same object."""

	assert metrosong.deadline_queue.default_registry() is metrosong.deadline_queue.default_registry()


def test_resolution_must_be_positive () -> None:

	"""A zero or negative resolution is rejected."""

	with pytest.raises(ValueError):
		metrosong.deadline_queue.DeadlineQueue(0)

	with pytest.raises(ValueError):
		metrosong.deadline_queue.DeadlineQueue(-0.1)


def test_dispatch_fires_due_callbacks_only (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Only entries with deadline <= now fire; the rest stay pending."""

	queue = registry.get(0.1)
	fired: typing.List[str] = []

	queue.schedule(clock.now + 1.0, lambda t: fired.append("later"))
	queue.schedule(clock.now, lambda t: fired.append("now"))

	assert queue.dispatch() == 1
	assert fired == ["now"]
	assert len(queue) == 1

	clock.advance(1.0)

	assert queue.dispatch() == 1
	assert fired == ["now", "later"]
	assert len(queue) == 0


def test_each_callback_fires_once (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""A fired entry is removed and never fires again."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []

	queue.schedule(clock.now, fired.append)

	queue.dispatch()
	clock.advance(1.0)
	queue.dispatch()

	assert len(fired) == 1


def test_callback_receives_tick_time (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Callbacks get the dispatch time, not their original deadline."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []

	deadline = clock.now + 0.25
	queue.schedule(deadline, fired.append)

	clock.advance(0.3)
	queue.dispatch()

	assert fired == [clock.now]
	assert fired[0] != deadline


def test_past_deadline_fires_on_next_poll (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Scheduling in the past is accepted and fires on the next tick."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []

	queue.schedule(clock.now - 60.0, fired.append)
	queue.dispatch()

	assert fired == [clock.now]


def test_datetime_deadline_is_normalised (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""A datetime deadline is converted to epoch seconds."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []

	when = datetime.datetime.fromtimestamp(clock.now + 2.0, tz=datetime.timezone.utc)
	queue.schedule(when, fired.append)

	clock.advance(1.9)
	queue.dispatch()
	assert fired == []

	clock.advance(0.2)
	queue.dispatch()
	assert len(fired) == 1


def test_unsupported_deadline_type (registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Anything other than a number or datetime raises TypeError."""

	queue = registry.get(0.1)

	with pytest.raises(TypeError):
		queue.schedule("soon", lambda t: None)  # type: ignore[arg-type]


def test_callback_can_reschedule_itself (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Work added from inside a callback waits for a later tick."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []

	def tick (fired_at: float) -> None:
		fired.append(fired_at)
		queue.schedule(fired_at, tick)

	queue.schedule(clock.now, tick)

	queue.dispatch()
	assert len(fired) == 1
	assert len(queue) == 1

	clock.advance(0.1)
	queue.dispatch()
	assert len(fired) == 2


def test_failing_callback_does_not_stop_others (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry, caplog: pytest.LogCaptureFixture) -> None:

	"""An exception in one callback is logged and the rest still fire."""

	queue = registry.get(0.1)
	fired: typing.List[str] = []

	def boom (fired_at: float) -> None:
		raise RuntimeError("boom")

	queue.schedule(clock.now, lambda t: fired.append("a"))
	queue.schedule(clock.now, boom)
	queue.schedule(clock.now, lambda t: fired.append("b"))

	with caplog.at_level(logging.ERROR, logger="metrosong.deadline_queue"):
		assert queue.dispatch() == 3

	assert sorted(fired) == ["a", "b"]
	assert "boom" in caplog.text


def test_autostart_false_does_not_start_thread (registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Queues from a manual registry have no running thread."""

	assert not registry.get(0.1).running


def test_each_queue_has_its_own_loop (live_registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Every resolution gets a separate live dispatch thread."""

	fine = live_registry.get(0.01)
	coarse = live_registry.get(0.02)

	assert fine.running
	assert coarse.running
	assert fine._thread is not coarse._thread

	live_registry.close()

	assert not fine.running
	assert not coarse.running


def test_live_dispatch_timing_bound (live_registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""A callback scheduled at now + d fires in [now + d, now + d + r + eps)."""

	resolution = 0.02
	delay = 0.1
	slack = 0.1

	queue = live_registry.get(resolution)
	fired = threading.Event()
	fired_at: typing.List[float] = []

	def record (t: float) -> None:
		fired_at.append(time.time())
		fired.set()

	start = time.time()
	queue.schedule(start + delay, record)

	assert fired.wait(2.0)
	assert start + delay <= fired_at[0] < start + delay + resolution + slack


def test_schedule_from_many_threads (clock: conftest.FakeClock, registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""Concurrent schedule() calls lose no entries."""

	queue = registry.get(0.1)
	fired: typing.List[float] = []
	lock = threading.Lock()

	def record (t: float) -> None:
		with lock:
			fired.append(t)

	def producer () -> None:
		for _ in range(200):
			queue.schedule(clock.now, record)

	threads = [threading.Thread(target=producer) for _ in range(4)]

	for thread in threads:
		thread.start()

	for thread in threads:
		thread.join()

	assert queue.dispatch() == 800
	assert len(fired) == 800


def test_registry_restarts_queue_after_close (live_registry: metrosong.deadline_queue.QueueRegistry) -> None:

	"""get() after close() returns the same queue with its loop running again."""

	queue = live_registry.get(0.01)
	live_registry.close()

	assert not queue.running
	assert live_registry.get(0.01) is queue
	assert queue.running


def _loop_threads (queue: metrosong.deadline_queue.DeadlineQueue) -> typing.List[threading.Thread]:

	name = f"metrosong-queue-{queue.resolution:g}"

	return [thread for thread in threading.enumerate() if thread.name == name and thread.is_alive()]


def test_restart_after_short_stop_leaves_one_loop () -> None:

	"""start() after a stop() whose join timed out never runs two loops."""

	queue = metrosong.deadline_queue.DeadlineQueue(0.3)

	queue.start()
	queue.stop(timeout=0.01)
	queue.start()

	try:
		assert queue.running
		assert len(_loop_threads(queue)) == 1
	finally:
		queue.stop()

	assert _loop_threads(queue) == []


def test_restart_from_own_callback_leaves_one_loop () -> None:

	"""stop() and start() from inside a callback hand over to a single new loop."""

	queue = metrosong.deadline_queue.DeadlineQueue(0.017)
	restarted = threading.Event()

	def restart (fired_at: float) -> None:
		queue.stop()
		queue.start()
		restarted.set()

	queue.schedule(time.time(), restart)
	queue.start()

	try:
		assert restarted.wait(2.0)
		time.sleep(0.1)

		assert queue.running
		assert len(_loop_threads(queue)) == 1
	finally:
		queue.stop()
