"""
Handler registry.

Maps (contract, event name) to the typed event variant and its reducer.
Resolved once at startup; dispatch is a dictionary lookup.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from indexer.config.settings import settings
from indexer.events.types import (
    AlertCreated,
    Approval,
    ChainEvent,
    PortfolioUpdated,
    Transfer,
    UserRegistered,
)
from indexer.services.indexer import reducers
from indexer.state import Reduction, TouchedKeys, ViewState

Reducer = Callable[[ViewState, Any], Reduction]
KeysFn = Callable[[Any, str], TouchedKeys]


@dataclass(frozen=True)
class Handler:
    """Registered reducer for one (contract, event name) pair."""

    contract: str
    event_name: str
    event_type: type[ChainEvent]
    reduce: Reducer
    touches: KeysFn


class HandlerRegistry:
    """
    Registry of event handlers.

    Contract identifiers compare case-insensitively so names and
    lowercase addresses can both be used.
    """

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, str], Handler] = {}

    @staticmethod
    def _key(contract: str, event_name: str) -> tuple[str, str]:
        return (contract.lower(), event_name)

    def register(
        self,
        contract: str,
        event_type: type[ChainEvent],
        reduce: Reducer,
        touches: KeysFn,
    ) -> Handler:
        """
        Register a reducer.

        Raises:
            ValueError: If the pair is already registered
        """
        key = self._key(contract, event_type.event_name)
        if key in self._handlers:
            raise ValueError(
                f"Handler for {contract}.{event_type.event_name} already registered"
            )
        handler = Handler(
            contract=contract,
            event_name=event_type.event_name,
            event_type=event_type,
            reduce=reduce,
            touches=touches,
        )
        self._handlers[key] = handler
        return handler

    def resolve(self, contract: str, event_name: str) -> Handler | None:
        """Look up a handler; None means the event is not indexed."""
        return self._handlers.get(self._key(contract, event_name))

    def __contains__(self, pair: tuple[str, str]) -> bool:
        return self._key(*pair) in self._handlers

    def __iter__(self) -> Iterator[Handler]:
        return iter(self._handlers.values())

    def __len__(self) -> int:
        return len(self._handlers)


def build_default_registry(
    registry_contract: str | None = None,
    token_contract: str | None = None,
) -> HandlerRegistry:
    """
    Build the registry for the registry and token contracts.

    Args:
        registry_contract: Identifier of the user registry contract
        token_contract: Identifier of the token contract

    Returns:
        Registry with all five handlers
    """
    registry_contract = registry_contract or settings.registry_contract
    token_contract = token_contract or settings.token_contract

    registry = HandlerRegistry()
    registry.register(
        registry_contract, UserRegistered,
        reducers.reduce_user_registered, reducers.touches_user,
    )
    registry.register(
        registry_contract, PortfolioUpdated,
        reducers.reduce_portfolio_updated, reducers.touches_user,
    )
    registry.register(
        registry_contract, AlertCreated,
        reducers.reduce_alert_created, reducers.touches_user,
    )
    registry.register(
        token_contract, Transfer,
        reducers.reduce_transfer, reducers.touches_transfer,
    )
    registry.register(
        token_contract, Approval,
        reducers.reduce_approval, reducers.touches_nothing,
    )
    return registry
