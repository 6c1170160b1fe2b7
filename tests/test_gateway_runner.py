# tests/test_gateway_runner.py
from __future__ import annotations

import gc
import threading

import pytest
from PySide6.QtTest import QTest

from courierboard.repositories.errors import GatewayError
from courierboard.services.gateway_runner import GatewayRunner

from tests.fakes import settle, wait_until


@pytest.fixture()
def runner(qapp):
    r = GatewayRunner()
    yield r
    r.discard()


def test_results_are_delivered_on_the_loop_thread(runner):
    loop_thread = threading.get_ident()
    seen = []

    runner.submit(threading.get_ident,
                  lambda worker: seen.append((worker, threading.get_ident())),
                  lambda exc: seen.append(exc))
    assert runner.pending() == 1
    assert settle(runner)

    worker, delivered_on = seen[0]
    assert worker != loop_thread
    assert delivered_on == loop_thread


def test_errors_go_to_the_error_callback(runner):
    errors = []

    def boom():
        raise GatewayError("HTTP 500: down", status=500)

    runner.submit(boom, lambda _r: errors.append("done"), errors.append)
    assert settle(runner)
    assert len(errors) == 1
    assert errors[0].status == 500


def test_unexpected_exceptions_are_logged_and_forwarded(runner, caplog):
    errors = []
    runner.submit(lambda: 1 / 0, lambda _r: None, errors.append)
    assert settle(runner)
    assert isinstance(errors[0], ZeroDivisionError)
    assert "Background call failed" in caplog.text


def test_discarded_callbacks_never_run(runner):
    gate = threading.Event()
    ran, seen = [], []

    def slow():
        gate.wait(2)
        ran.append(True)

    runner.submit(slow, seen.append, seen.append)
    runner.discard()
    assert runner.pending() == 0
    gate.set()

    assert wait_until(lambda: ran)
    QTest.qWait(50)
    assert seen == []


def test_released_runner_with_a_call_in_flight(qapp):
    gate = threading.Event()
    ran, seen = [], []

    def slow():
        gate.wait(2)
        ran.append(True)

    r = GatewayRunner()
    r.submit(slow, seen.append, seen.append)
    del r
    gc.collect()
    gate.set()

    assert wait_until(lambda: ran)
    QTest.qWait(50)
    assert seen == []


def test_runners_keep_their_own_callbacks(qapp):
    first, second = GatewayRunner(), GatewayRunner()
    seen = []
    first.submit(lambda: "a", seen.append, seen.append)
    second.submit(lambda: "b", seen.append, seen.append)
    first.discard()

    assert settle(second)
    QTest.qWait(50)
    assert seen == ["b"]
