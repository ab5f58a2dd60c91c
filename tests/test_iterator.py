"""
Tests for the merged historical + live event iterator.
"""
import threading
import time

import pytest

from testimonium_sdk.bind import EventIterator
from testimonium_sdk.cancel import CancelToken
from testimonium_sdk.contracts import SubmitBlockHeader
from testimonium_sdk.exceptions import DecodeError, FilterError, SubscriptionError
from testimonium_sdk.models import FilterOptions
from conftest import SUBMIT_BLOCK_HEADER_TOPIC, TEST_CONTRACT, WAIT, hash32, header_log


def _history(transport, count, first_block=1):
    records = []
    for i in range(count):
        record = header_log(transport, hash32(i + 1), i, hash32(i), block_number=first_block + i)
        transport.add_log(record)
        records.append(record)
    return records


def _drain(iterator):
    events = []
    while iterator.next():
        events.append(iterator.event)
    return events


def _next_in_thread(iterator):
    result = {}
    thread = threading.Thread(target=lambda: result.setdefault("next", iterator.next()), daemon=True)
    thread.start()
    return thread, result


class TestHistorical:
    def test_bounded_query_yields_backlog_then_ends(self, relay, transport):
        records = _history(transport, 3)
        iterator = relay.filter_submit_block_header(FilterOptions(start=0, end=10))

        events = _drain(iterator)

        assert [e.raw for e in events] == records
        assert iterator.error is None
        assert transport.subscribe_calls == 0
        assert iterator.next() is False
        iterator.close()

    def test_backlog_then_clean_subscription_end(self, relay, transport):
        _history(transport, 4)
        iterator = relay.filter_submit_block_header()
        transport.finish_subscriptions()

        assert len(_drain(iterator)) == 4
        assert iterator.error is None
        iterator.close()

    def test_events_carry_provenance(self, relay, transport):
        record = header_log(transport, hash32(0xAA), 5, hash32(0xBB), block_number=7, log_index=2)
        transport.add_log(record)
        with relay.filter_submit_block_header(FilterOptions(end=7)) as iterator:
            assert iterator.next()
            event = iterator.event
        assert isinstance(event, SubmitBlockHeader)
        assert event.raw.block_number == 7
        assert event.raw.log_index == 2
        assert event.raw.transaction_hash == record.transaction_hash
        assert event.raw.position == (record.block_hash, 2)

    def test_filter_error_fails_construction_and_releases_subscription(self, relay, transport):
        transport.filter_error = RuntimeError("query timeout")
        with pytest.raises(FilterError):
            relay.filter_submit_block_header()
        assert transport.unsubscribe_calls == 1
        assert transport.active_subscriptions == 0

    def test_unexpected_history_error_releases_subscription(self, relay, transport, monkeypatch):
        def broken(*args, **kwargs):
            raise KeyError("blockNumber")

        monkeypatch.setattr(transport, "filter_logs", broken)
        with pytest.raises(KeyError):
            relay.filter_submit_block_header()
        assert transport.unsubscribe_calls == 1
        assert transport.active_subscriptions == 0

    def test_subscription_error_fails_construction(self, relay, transport):
        transport.subscribe_error = RuntimeError("no websocket")
        with pytest.raises(SubscriptionError):
            relay.filter_submit_block_header()

    def test_subscription_opened_before_history_query(self, relay, transport, monkeypatch):
        seen = []
        original = transport.filter_logs

        def spy(*args, **kwargs):
            seen.append(transport.active_subscriptions)
            return original(*args, **kwargs)

        monkeypatch.setattr(transport, "filter_logs", spy)
        relay.filter_submit_block_header().close()
        assert seen == [1]

    def test_python_iteration(self, relay, transport):
        _history(transport, 2)
        with relay.filter_submit_block_header(FilterOptions(end=100)) as iterator:
            nonces = [event.nonce for event in iterator]
        assert nonces == [0, 1]


class TestLive:
    def test_live_events_follow_backlog(self, relay, transport):
        _history(transport, 1)
        iterator = relay.filter_submit_block_header()
        live = header_log(transport, hash32(0x10), 10, hash32(1), block_number=5)
        transport.emit(live)

        assert iterator.next() and iterator.event.nonce == 0
        assert iterator.next() and iterator.event.raw is live
        iterator.close()

    def test_blocked_next_wakes_on_emit(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        thread, result = _next_in_thread(iterator)
        time.sleep(0.05)
        transport.emit(header_log(transport, hash32(3), 3, hash32(2)))
        thread.join(WAIT)

        assert not thread.is_alive()
        assert result["next"] is True
        assert iterator.event.nonce == 3
        iterator.close()

    def test_failure_after_k_records_yields_k_then_error(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        for i in range(3):
            transport.emit(header_log(transport, hash32(i + 1), i, hash32(i), block_number=20 + i))
        transport.fail_subscriptions(ConnectionError("node went away"))

        events = _drain(iterator)

        assert len(events) == 3
        assert isinstance(iterator.error, SubscriptionError)
        assert "node went away" in str(iterator.error)
        iterator.close()

    def test_failure_drains_backlog_and_buffer_first(self, relay, transport):
        _history(transport, 2)
        iterator = relay.filter_submit_block_header()
        transport.emit(header_log(transport, hash32(9), 9, hash32(8), block_number=30))
        transport.fail_subscriptions(ConnectionError("reset"))

        assert len(_drain(iterator)) == 3
        assert iterator.error is not None

    def test_error_is_terminal(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        transport.fail_subscriptions(ConnectionError("reset"))
        assert iterator.next() is False
        error = iterator.error
        transport.emit(header_log(transport, hash32(1), 1, hash32(0)))
        assert iterator.next() is False
        assert iterator.error is error

    def test_overlap_is_not_deduplicated(self, relay, transport):
        records = _history(transport, 1)
        iterator = relay.filter_submit_block_header()
        transport.emit(records[0])

        first = iterator.next() and iterator.event
        second = iterator.next() and iterator.event

        assert first.raw.position == second.raw.position
        iterator.close()

    def test_decode_failure_is_terminal(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        transport.emit(transport.make_log(TEST_CONTRACT, [SUBMIT_BLOCK_HEADER_TOPIC], b"\x00" * 5))
        transport.emit(header_log(transport, hash32(1), 1, hash32(0)))

        assert iterator.next() is False
        assert isinstance(iterator.error, DecodeError)
        assert iterator.next() is False
        iterator.close()

    def test_decode_failure_in_backlog(self, relay, transport):
        transport.add_log(transport.make_log(TEST_CONTRACT, [SUBMIT_BLOCK_HEADER_TOPIC], b"\x01"))
        _history(transport, 1)
        with relay.filter_submit_block_header(FilterOptions(end=100)) as iterator:
            assert iterator.next() is False
            assert isinstance(iterator.error, DecodeError)


class TestCancellationAndClose:
    def test_cancel_unblocks_next_without_error(self, relay, transport):
        token = CancelToken()
        iterator = relay.filter_submit_block_header(FilterOptions(cancel=token))
        thread, result = _next_in_thread(iterator)
        time.sleep(0.05)
        token.cancel()
        thread.join(WAIT)

        assert not thread.is_alive()
        assert result["next"] is False
        assert iterator.error is None
        iterator.close()

    def test_timeout_token(self, relay):
        iterator = relay.filter_submit_block_header(FilterOptions(cancel=CancelToken(timeout=0.05)))
        started = time.monotonic()
        assert iterator.next() is False
        assert time.monotonic() - started < WAIT
        assert iterator.error is None
        iterator.close()

    def test_close_before_next_releases_once(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        iterator.close()
        iterator.close()
        assert transport.unsubscribe_calls == 1
        assert transport.active_subscriptions == 0

    def test_concurrent_close(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        threads = [threading.Thread(target=iterator.close) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(WAIT)
        assert transport.unsubscribe_calls == 1

    def test_close_after_exhaustion(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        transport.finish_subscriptions()
        assert iterator.next() is False
        iterator.close()
        assert transport.unsubscribe_calls == 1

    def test_next_after_close_ends_cleanly(self, relay, transport):
        iterator = relay.filter_submit_block_header()
        iterator.close()
        assert iterator.next() is False
        assert iterator.error is None

    def test_close_unblocks_waiting_next(self, relay):
        iterator = relay.filter_submit_block_header()
        thread, result = _next_in_thread(iterator)
        time.sleep(0.05)
        iterator.close()
        thread.join(WAIT)
        assert result["next"] is False
        assert iterator.error is None

    def test_open_directly(self, relay, transport):
        _history(transport, 2)
        iterator = EventIterator.open(
            relay.contract, SubmitBlockHeader, "SubmitBlockHeader", FilterOptions(end=50)
        )
        assert len(_drain(iterator)) == 2
        iterator.close()
