"""Tests for the handler registry."""

import pytest

from indexer.config.constants import REGISTRY_CONTRACT, TOKEN_CONTRACT
from indexer.events.types import Transfer
from indexer.services.indexer.reducers import reduce_transfer, touches_transfer
from indexer.services.indexer.registry import HandlerRegistry, build_default_registry


class TestHandlerRegistry:
    """Test registration and dispatch."""

    def test_default_registry_has_all_handlers(self):
        registry = build_default_registry()

        assert len(registry) == 5
        for name in ("UserRegistered", "PortfolioUpdated", "AlertCreated"):
            assert (REGISTRY_CONTRACT, name) in registry
        for name in ("Transfer", "Approval"):
            assert (TOKEN_CONTRACT, name) in registry

    def test_resolve_is_case_insensitive_on_contract(self):
        registry = build_default_registry()

        handler = registry.resolve(TOKEN_CONTRACT.lower(), "Transfer")

        assert handler is not None
        assert handler.event_type is Transfer

    def test_unregistered_pair(self):
        registry = build_default_registry()

        assert registry.resolve(TOKEN_CONTRACT, "Mint") is None
        assert registry.resolve("OtherContract", "Transfer") is None

    def test_duplicate_registration_rejected(self):
        registry = HandlerRegistry()
        registry.register("Token", Transfer, reduce_transfer, touches_transfer)

        with pytest.raises(ValueError):
            registry.register("TOKEN", Transfer, reduce_transfer, touches_transfer)

    def test_contract_addresses_as_identifiers(self):
        address = "0x" + "ab" * 20
        registry = build_default_registry(token_contract=address)

        assert registry.resolve(address.upper().replace("0X", "0x"), "Transfer") is not None
        assert registry.resolve(TOKEN_CONTRACT, "Transfer") is None
