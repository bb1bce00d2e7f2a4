"""
Tests for feed event parsing.

Tests cover:
- Nested feed payload shape
- Typed variant validation and normalization
- Malformed parameters
"""

import pytest

from indexer.events.raw import RawEvent
from indexer.events.types import (
    AlertCreated,
    PortfolioUpdated,
    Transfer,
    UserRegistered,
)
from indexer.utils.exceptions import MalformedEventError


class TestRawEventFromFeed:
    """Test RawEvent.from_feed."""

    def test_nested_payload(self, alice):
        """Nested feed shape maps onto the envelope."""
        raw = RawEvent.from_feed({
            "chainId": 137,
            "block": {"number": 500, "timestamp": 1_700_000_500},
            "logIndex": 3,
            "transaction": {"hash": "0xabc"},
            "srcAddress": "ChainMindRegistry",
            "event": {"name": "UserRegistered", "params": {"user": alice, "timestamp": 1}},
        })

        assert raw.event_id == "137_500_3"
        assert raw.block_timestamp == 1_700_000_500
        assert raw.contract == "ChainMindRegistry"
        assert raw.params["user"] == alice

    def test_flat_payload(self):
        raw = RawEvent.from_feed({
            "chain_id": 1,
            "block_number": 2,
            "log_index": 0,
            "block_timestamp": 10,
            "transaction_hash": "0x1",
            "contract": "ChainMindToken",
            "event_name": "Approval",
            "params": {},
        })

        assert raw.key.position == (2, 0)

    def test_missing_block_is_malformed(self):
        with pytest.raises(MalformedEventError):
            RawEvent.from_feed({
                "chainId": 1,
                "logIndex": 0,
                "transaction": {"hash": "0x1"},
                "contract": "ChainMindToken",
                "event": {"name": "Transfer", "params": {}},
            })

    def test_negative_log_index_is_malformed(self):
        with pytest.raises(MalformedEventError):
            RawEvent.from_feed({
                "chainId": 1,
                "block": {"number": 1, "timestamp": 1},
                "logIndex": -1,
                "transaction": {"hash": "0x1"},
                "contract": "ChainMindToken",
                "event": {"name": "Transfer", "params": {}},
            })

    def test_non_mapping_block_is_malformed(self):
        with pytest.raises(MalformedEventError):
            RawEvent.from_feed({"chainId": 1, "block": 5})


class TestTypedEvents:
    """Test typed variant parsing."""

    def test_transfer_normalizes_addresses(self, make_transfer, bob):
        checksummed_like = "0x" + "A1" * 20
        event = Transfer.parse(make_transfer(checksummed_like, bob.upper().replace("0X", "0x"), 5))

        assert event.from_address == "0x" + "a1" * 20
        assert event.to_address == bob
        assert event.value == 5

    def test_transfer_accepts_hex_and_large_values(self, make_transfer, alice, bob):
        """uint256 values survive exactly."""
        big = 2**256 - 1
        event = Transfer.parse(make_transfer(alice, bob, 0))
        assert event.value == 0

        raw = make_transfer(alice, bob, 0)
        raw = raw.model_copy(update={"params": {"from": alice, "to": bob, "value": hex(big)}})
        assert Transfer.parse(raw).value == big

    @pytest.mark.parametrize("value", ["-1", 1.5, True, "abc"])
    def test_transfer_rejects_bad_value(self, make_event, alice, bob, value):
        raw = make_event("Transfer", {"from": alice, "to": bob, "value": value})
        with pytest.raises(MalformedEventError) as exc_info:
            Transfer.parse(raw)
        assert exc_info.value.event_id == raw.event_id

    def test_missing_param_is_malformed(self, make_event):
        with pytest.raises(MalformedEventError):
            UserRegistered.parse(make_event("UserRegistered", {}))

    def test_invalid_address_is_malformed(self, make_event):
        with pytest.raises(MalformedEventError):
            PortfolioUpdated.parse(
                make_event("PortfolioUpdated", {"user": "0x1234", "totalValue": "1"})
            )

    def test_user_registered_uses_param_timestamp(self, make_event, alice):
        event = UserRegistered.parse(
            make_event("UserRegistered", {"user": alice, "timestamp": 42}, block_timestamp=99)
        )
        assert event.activity_timestamp == 42

    def test_user_registered_falls_back_to_block_timestamp(self, make_event, alice):
        event = UserRegistered.parse(
            make_event("UserRegistered", {"user": alice}, block_timestamp=99)
        )
        assert event.activity_timestamp == 99

    def test_alert_created_alias(self, make_event, alice):
        event = AlertCreated.parse(
            make_event("AlertCreated", {"user": alice, "alertType": "price", "timestamp": "7"})
        )
        assert event.alert_type == "price"
        assert event.activity_timestamp == 7

    def test_record_params_are_json_safe(self, make_transfer, alice, bob):
        """Amounts are stored as decimal strings under their wire names."""
        event = Transfer.parse(make_transfer(alice, bob, 2**200))

        assert event.record_params() == {
            "from": alice,
            "to": bob,
            "value": str(2**200),
        }
