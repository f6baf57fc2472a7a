from __future__ import annotations

import asyncio
import threading

import pytest

from syncbridge.domain.ports import RecordUpdate
from syncbridge.domain.sync import BatchWriter, split_batches
from tests.helpers.remote import FakeRemoteClient


def _updates(count: int) -> list[RecordUpdate]:
    return [RecordUpdate(id=f"T{index:04d}", properties={"amount": "1"}) for index in range(count)]


def test_split_batches_respects_the_size_limit() -> None:
    assert [len(batch) for batch in split_batches(_updates(150), 100)] == [100, 50]
    assert split_batches([], 100) == []
    with pytest.raises(ValueError, match="batch_size"):
        split_batches(_updates(1), 0)


def test_writer_sends_full_and_partial_batches() -> None:
    client = FakeRemoteClient()
    writer = BatchWriter(client, "deals", batch_size=100)

    report = asyncio.run(writer.write(_updates(150)))

    assert client.batch_sizes == [100, 50]
    assert report.succeeded == 150
    assert report.failed_batches == 0
    assert len(report.succeeded_ids()) == 150


def test_failed_batch_does_not_affect_its_siblings() -> None:
    client = FakeRemoteClient(fail_batches={1})
    writer = BatchWriter(client, "deals", batch_size=10)

    report = asyncio.run(writer.write(_updates(30)))

    assert report.succeeded == 20
    assert report.failed_batches == 1
    [failed] = [outcome for outcome in report.outcomes if outcome.failed]
    assert failed.index == 1
    assert failed.error == "batch 1 rejected"
    assert "T0010" not in report.succeeded_ids()


def test_rejected_items_are_reported_per_record() -> None:
    client = FakeRemoteClient(reject_ids={"T0002"})
    writer = BatchWriter(client, "deals", batch_size=5)

    report = asyncio.run(writer.write(_updates(5)))

    assert report.succeeded == 4
    assert report.failed_items == 1
    assert report.failed_batches == 0


def test_in_flight_batches_are_bounded() -> None:
    client = FakeRemoteClient()
    writer = BatchWriter(client, "deals", batch_size=1, max_in_flight=2)

    asyncio.run(writer.write(_updates(6)))

    assert client.max_in_flight_seen == 2


def test_cancelled_run_sends_no_further_batches() -> None:
    client = FakeRemoteClient()
    cancel = threading.Event()
    cancel.set()
    writer = BatchWriter(client, "deals", batch_size=2, cancel_event=cancel)

    report = asyncio.run(writer.write(_updates(4)))

    assert client.batch_calls == []
    assert report.succeeded == 0
    assert all(outcome.cancelled for outcome in report.outcomes)


def test_slow_batch_times_out() -> None:
    client = FakeRemoteClient()
    writer = BatchWriter(client, "deals", batch_size=5, timeout_seconds=0.001)

    report = asyncio.run(writer.write(_updates(5)))

    [outcome] = report.outcomes
    assert outcome.failed
    assert outcome.error is not None
    assert "timed out" in outcome.error


def test_empty_write_makes_no_calls() -> None:
    client = FakeRemoteClient()

    report = asyncio.run(BatchWriter(client, "deals").write([]))

    assert report.outcomes == []
    assert client.batch_calls == []
