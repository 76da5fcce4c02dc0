"""Unit tests for drain state and worker tracking."""

import logging
import threading

from fileguard.handlers.system_handlers import handle_healthz
from fileguard.lifecycle.state import Phase, ServerLifecycle


def test_new_lifecycle_is_serving():
    lifecycle = ServerLifecycle()
    assert lifecycle.phase is Phase.SERVING
    assert not lifecycle.is_draining()
    assert not lifecycle.should_stop()
    assert handle_healthz(lifecycle).status_code == 200


def test_begin_draining_flips_health_and_stop(caplog):
    caplog.set_level(logging.INFO, logger="fileguard")
    lifecycle = ServerLifecycle()
    lifecycle.begin_draining()
    lifecycle.begin_draining()

    assert lifecycle.is_draining()
    assert lifecycle.should_stop()
    assert handle_healthz(lifecycle).status_code == 503
    started = [r for r in caplog.records if getattr(r, "event", None) == "draining_started"]
    assert len(started) == 1


def test_wait_for_workers_returns_when_last_worker_leaves():
    lifecycle = ServerLifecycle()
    release = threading.Event()

    def work():
        lifecycle.register_worker(threading.current_thread())
        release.wait()
        lifecycle.cleanup_worker(threading.current_thread())

    thread = threading.Thread(target=work)
    thread.start()
    while lifecycle.active_worker_count() == 0:
        pass
    release.set()

    assert lifecycle.wait_for_workers(2.0)
    thread.join()
    assert lifecycle.active_worker_count() == 0


def test_wait_for_workers_times_out(caplog):
    lifecycle = ServerLifecycle()
    lifecycle.register_worker(threading.current_thread())

    assert not lifecycle.wait_for_workers(0.05)
    timeout = next(
        r for r in caplog.records if getattr(r, "event", None) == "shutdown_timeout"
    )
    assert timeout.remaining_workers == 1
