"""
Tests for the typed Testimonium binding and sessions.
"""
import eth_abi
import pytest
from eth_account import Account

from testimonium_sdk.bind import Session
from testimonium_sdk.contracts import (
    Header, SubmitBlockHeader, Testimonium, TestimoniumCaller, TestimoniumFilterer, parse_logs
)
from testimonium_sdk.exceptions import DecodeError
from testimonium_sdk.models import CallOptions, TransactOptions
from conftest import SUBMIT_BLOCK_HEADER_TOPIC, TEST_CONTRACT, hash32, header_log


def _answer(relay, transport, method, values):
    spec = relay.contract.abi.method(method)
    transport.on_call(TEST_CONTRACT, spec.selector, eth_abi.encode(spec.output_types, values))


def test_parse_submit_block_header_example(relay, transport):
    record = header_log(
        transport, hash32(0xAA), 5, hash32(0xBB),
        hash_without_nonce=hash32(0xCC), block_number=1234, log_index=7
    )

    event = relay.parse_submit_block_header(record)

    assert isinstance(event, SubmitBlockHeader)
    assert event.hash == hash32(0xAA)
    assert event.hash_without_nonce == hash32(0xCC)
    assert event.nonce == 5
    assert event.parent == hash32(0xBB)
    assert event.raw.address == TEST_CONTRACT
    assert event.raw.block_number == 1234
    assert event.raw.block_hash == record.block_hash
    assert event.raw.transaction_hash == record.transaction_hash
    assert event.raw.log_index == 7


def test_parse_rejects_foreign_log(relay, transport):
    record = transport.make_log(TEST_CONTRACT, [hash32(0x01)], b"")
    with pytest.raises(DecodeError):
        relay.parse_submit_block_header(record)


def test_parse_logs_batch(relay, transport):
    records = [header_log(transport, hash32(i), i, hash32(0), log_index=i) for i in range(1, 4)]
    assert [e.nonce for e in parse_logs(relay, records)] == [1, 2, 3]


def test_event_topic_matches_raw_logs(transport):
    record = header_log(transport, hash32(1), 1, hash32(0))
    assert record.topics == [SUBMIT_BLOCK_HEADER_TOPIC]


def test_typed_calls(relay, transport):
    _answer(relay, transport, "isBlock", [True])
    _answer(relay, transport, "isUnlocked", [False])
    _answer(relay, transport, "getNoOfForks", [2])
    _answer(relay, transport, "getBlockHashOfEndpoint", [hash32(0x42)])

    assert relay.is_block(None, hash32(1)) is True
    assert relay.is_unlocked(None, hash32(1)) is False
    assert relay.get_no_of_forks(None) == 2
    assert relay.get_block_hash_of_endpoint(None, 0) == hash32(0x42)


def test_get_block_returns_tuple(relay, transport):
    values = [hash32(1), 10, 20, 30, 40, 50, hash32(2)]
    _answer(relay, transport, "getBlock", values)
    assert relay.get_block(None, hash32(9)) == tuple(values)


def test_headers_struct(relay, transport):
    values = [hash32(1), hash32(2), hash32(3), hash32(4), 100, hash32(5), 6, 7, 8, 9, 10, hash32(11)]
    _answer(relay, transport, "headers", values)

    header = relay.headers(None, hash32(0))

    assert isinstance(header, Header)
    assert header.block_number == 100
    assert header.latest_fork == hash32(11)
    assert header.model_dump(by_alias=True)["stateRoot"] == hash32(2)


def test_submit_header_transaction(relay, transport, signer):
    tx = relay.submit_header(TransactOptions(signer=signer), b"\xf9\x02\x11\x00")
    assert tx.data[:4].hex() == "c565ba10"
    assert Account.recover_transaction(tx.raw) == signer.address


def test_split_facades_share_binding(relay):
    assert isinstance(relay.caller, TestimoniumCaller)
    assert isinstance(relay.filterer, TestimoniumFilterer)
    assert relay.caller.contract is relay.contract
    assert relay.transactor.contract is relay.contract


def test_at_binds_address(transport):
    relay = Testimonium.at(TEST_CONTRACT, transport)
    assert relay.address.lower() == TEST_CONTRACT


class TestSession:
    def test_call_options_are_bound(self, relay, transport):
        _answer(relay, transport, "isBlock", [True])
        session = relay.session(call_opts=CallOptions(block=77))

        assert session.is_block(hash32(1)) is True
        assert transport.calls[-1][2] == 77

    def test_transact_options_are_bound(self, relay, transport, signer):
        session = relay.session(transact_opts=TransactOptions(signer=signer, gas_limit=90_000))
        tx = session.dispute_block(hash32(3))
        assert tx.gas == 90_000
        assert tx.data[:4].hex() == "5b3f8a98"

    def test_read_only_session_has_no_transactions(self, relay):
        session = relay.session()
        with pytest.raises(AttributeError, match="read-only"):
            session.submit_header(b"")

    def test_transfer_is_available_on_sessions(self, relay, transport, signer):
        session = relay.session(transact_opts=TransactOptions(signer=signer, value=1))
        assert session.transfer().value == 1

    def test_event_methods_pass_through(self, relay, transport):
        record = header_log(transport, hash32(0xAA), 5, hash32(0xBB))
        session = Session(relay)
        assert session.parse_submit_block_header(record).nonce == 5

    def test_caller_session(self, relay, transport):
        _answer(relay, transport, "getNoOfForks", [4])
        session = Session(relay.caller, call_opts=CallOptions(block="latest"))
        assert session.get_no_of_forks() == 4

    def test_unknown_attribute(self, relay):
        with pytest.raises(AttributeError):
            relay.session().does_not_exist
