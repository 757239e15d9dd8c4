from __future__ import annotations

import threading

from orderflow.models import OrderStatus
from orderflow.runtime import PipelineStats, RunTokens
from orderflow.scheduler import RediscoveryScheduler


class SubmitRecorder:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.calls = []

    def __call__(self, order_id, cancel=None) -> bool:
        self.calls.append((order_id, cancel))
        return self.accept


def _scheduler(store, submit, tokens=None, interval=0.05) -> RediscoveryScheduler:
    return RediscoveryScheduler(store, submit, tokens or RunTokens(), PipelineStats(), interval=interval)


def test_scan_resubmits_only_pending_orders(recording_store, make_order) -> None:
    pending = [recording_store.create(make_order(user_id=n)) for n in (1, 2)]
    for status in (OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        recording_store.create(make_order(user_id=9, status=status))
    submit = SubmitRecorder()
    scheduler = _scheduler(recording_store, submit)

    queued = scheduler.scan_once()

    assert queued == 2
    assert sorted(order_id for order_id, _ in submit.calls) == sorted(o.id for o in pending)
    assert all(cancel is scheduler.tokens.stop for _, cancel in submit.calls)
    assert scheduler.stats.get("rescans") == 1
    assert scheduler.stats.get("resubmitted") == 2


def test_scan_counts_only_accepted_submits(recording_store, make_order) -> None:
    recording_store.create(make_order())
    scheduler = _scheduler(recording_store, SubmitRecorder(accept=False))

    assert scheduler.scan_once() == 0
    assert scheduler.stats.get("resubmitted") == 0


def test_query_failure_is_logged_and_skipped(recording_store, make_order, caplog) -> None:
    recording_store.create(make_order())
    recording_store.fail_queries = 1
    submit = SubmitRecorder()
    scheduler = _scheduler(recording_store, submit)

    assert scheduler.scan_once() == 0
    assert submit.calls == []
    assert "failed to query pending orders" in caplog.text

    # next scan works again
    assert scheduler.scan_once() == 1


def test_scan_stops_submitting_once_stopped(recording_store, make_order) -> None:
    recording_store.create(make_order())
    tokens = RunTokens()
    tokens.stop.set()
    submit = SubmitRecorder()

    assert _scheduler(recording_store, submit, tokens=tokens).scan_once() == 0
    assert submit.calls == []


def test_run_loop_scans_until_stopped(recording_store, make_order, wait_for) -> None:
    order = recording_store.create(make_order())
    submit = SubmitRecorder()
    scheduler = _scheduler(recording_store, submit)

    thread = threading.Thread(target=scheduler.run)
    thread.start()
    try:
        assert wait_for(lambda: scheduler.stats.get("rescans") >= 2)
    finally:
        scheduler.tokens.stop.set()
        thread.join(2.0)

    assert not thread.is_alive()
    assert {order_id for order_id, _ in submit.calls} == {order.id}
