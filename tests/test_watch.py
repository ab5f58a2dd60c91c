"""
Tests for the live watch dispatcher.
"""
import threading
import time

import pytest

from testimonium_sdk.cancel import CancelToken
from testimonium_sdk.channel import Channel
from testimonium_sdk.exceptions import DecodeError, SubscriptionError
from testimonium_sdk.models import WatchOptions
from conftest import SUBMIT_BLOCK_HEADER_TOPIC, TEST_CONTRACT, WAIT, hash32, header_log


def _wait_for(condition):
    deadline = time.monotonic() + WAIT
    while not condition():
        assert time.monotonic() < deadline, "condition not reached"
        time.sleep(0.01)


def test_forwards_into_channel(relay, transport):
    sink = Channel()
    watch = relay.watch_submit_block_header(WatchOptions(), sink)
    transport.emit(header_log(transport, hash32(0xAA), 5, hash32(0xBB)))

    event = sink.get(cancel=CancelToken(timeout=WAIT))

    assert event is not None
    assert event.hash == hash32(0xAA)
    assert event.nonce == 5
    watch.unsubscribe()
    assert watch.error is None


def test_forwards_into_callable(relay, transport):
    received = []
    arrived = threading.Event()

    def sink(event):
        received.append(event)
        if len(received) == 2:
            arrived.set()

    with relay.watch_submit_block_header(None, sink):
        transport.emit(header_log(transport, hash32(1), 1, hash32(0), log_index=0))
        transport.emit(header_log(transport, hash32(2), 2, hash32(1), log_index=1))
        assert arrived.wait(WAIT)

    assert [e.nonce for e in received] == [1, 2]


def test_decode_failure_stops_watch(relay, transport):
    received = []
    watch = relay.watch_submit_block_header(None, received.append)
    transport.emit(transport.make_log(TEST_CONTRACT, [SUBMIT_BLOCK_HEADER_TOPIC], b"\xff"))
    transport.emit(header_log(transport, hash32(1), 1, hash32(0)))

    error = watch.wait(WAIT)

    assert isinstance(error, DecodeError)
    assert received == []
    assert not watch.running
    assert transport.unsubscribe_calls == 1


def test_subscription_error_is_reported(relay, transport):
    watch = relay.watch_submit_block_header(None, Channel())
    transport.fail_subscriptions(ConnectionError("connection reset"))

    error = watch.wait(WAIT)

    assert isinstance(error, SubscriptionError)
    assert "connection reset" in str(error)


def test_cancellation_stops_cleanly(relay, transport):
    token = CancelToken()
    watch = relay.watch_submit_block_header(WatchOptions(cancel=token), Channel())
    token.cancel()

    assert watch.wait(WAIT) is None
    assert not watch.running
    assert transport.unsubscribe_calls == 1


def test_blocked_delivery_is_interrupted_by_error(relay, transport):
    sink = Channel(maxsize=1)
    watch = relay.watch_submit_block_header(None, sink)
    transport.emit(header_log(transport, hash32(1), 1, hash32(0), log_index=0))
    _wait_for(lambda: len(sink) == 1)
    transport.emit(header_log(transport, hash32(2), 2, hash32(1), log_index=1))
    # Nobody reads the sink: the second delivery blocks until the stream fails
    transport.fail_subscriptions(ConnectionError("gone"))

    assert isinstance(watch.wait(WAIT), SubscriptionError)
    assert len(sink) == 1


def test_blocked_delivery_is_interrupted_by_unsubscribe(relay, transport):
    sink = Channel(maxsize=1)
    watch = relay.watch_submit_block_header(None, sink)
    transport.emit(header_log(transport, hash32(1), 1, hash32(0), log_index=0))
    transport.emit(header_log(transport, hash32(2), 2, hash32(1), log_index=1))

    watch.unsubscribe()

    assert not watch.running
    assert watch.error is None


def test_sink_exception_stops_watch(relay, transport):
    def sink(event):
        raise RuntimeError("database locked")

    watch = relay.watch_submit_block_header(None, sink)
    transport.emit(header_log(transport, hash32(1), 1, hash32(0)))

    error = watch.wait(WAIT)

    assert isinstance(error, RuntimeError)
    assert transport.active_subscriptions == 0


def test_unsubscribe_is_idempotent(relay, transport):
    watch = relay.watch_submit_block_header(None, Channel())
    watch.unsubscribe()
    watch.unsubscribe()
    assert transport.unsubscribe_calls == 1


def test_subscribe_failure_raises(relay, transport):
    transport.subscribe_error = SubscriptionError("unsupported")
    with pytest.raises(SubscriptionError):
        relay.watch_submit_block_header(None, Channel())
