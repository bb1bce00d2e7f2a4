"""
Typed event variants.

One pydantic model per supported event kind. Parsing a RawEvent into
its variant validates and normalizes the parameters: addresses become
lowercase hex, amounts become Python ints.
"""

from typing import Annotated, Any, ClassVar

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
)

from indexer.config.constants import (
    ALERT_CREATED,
    APPROVAL,
    PORTFOLIO_UPDATED,
    TRANSFER,
    USER_REGISTERED,
)
from indexer.events.identity import EventKey
from indexer.events.raw import RawEvent
from indexer.utils.addresses import normalize_address
from indexer.utils.exceptions import MalformedEventError


def _non_negative(value: int) -> int:
    if value < 0:
        raise ValueError("must be non-negative")
    return value


def _to_int(value: Any) -> Any:
    """Coerce decimal or 0x-hex strings to int; reject bools and floats."""
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(value, float):
        raise ValueError("floating point amounts are not allowed")
    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith(("0x", "-0x")):
                return int(text, 16)
            return int(text)
        except ValueError as e:
            raise ValueError(f"not an integer: {value!r}") from e
    return value


Address = Annotated[str, AfterValidator(normalize_address)]
UInt = Annotated[int, BeforeValidator(_to_int), AfterValidator(_non_negative)]
Timestamp = UInt

# Envelope fields copied from RawEvent onto every variant
ENVELOPE_FIELDS = frozenset({
    "chain_id",
    "block_number",
    "log_index",
    "block_timestamp",
    "transaction_hash",
    "contract",
})


class ChainEvent(BaseModel):
    """Base class for typed events."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_name: ClassVar[str]

    chain_id: int
    block_number: int
    log_index: int
    block_timestamp: int
    transaction_hash: str
    contract: str

    @property
    def key(self) -> EventKey:
        return EventKey(self.chain_id, self.block_number, self.log_index)

    @property
    def event_id(self) -> str:
        return self.key.event_id

    @property
    def activity_timestamp(self) -> int:
        """Timestamp credited to the user as activity."""
        return self.block_timestamp

    @classmethod
    def parse(cls, raw: RawEvent) -> "ChainEvent":
        """
        Validate a raw event into this variant.

        Raises:
            MalformedEventError: If a parameter is missing or ill-typed
        """
        data = dict(raw.params)
        data.update({name: getattr(raw, name) for name in ENVELOPE_FIELDS})
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedEventError(
                f"{cls.event_name} {raw.event_id}: {e}", event_id=raw.event_id
            ) from e

    def record_params(self) -> dict[str, Any]:
        """JSON-safe parameters for the event log (ints as strings)."""
        params = self.model_dump(by_alias=True, exclude=set(ENVELOPE_FIELDS))
        return {
            name: str(value) if isinstance(value, int) else value
            for name, value in params.items()
        }


class UserRegistered(ChainEvent):
    event_name: ClassVar[str] = USER_REGISTERED

    user: Address
    timestamp: Timestamp | None = None

    @property
    def activity_timestamp(self) -> int:
        return self.timestamp if self.timestamp is not None else self.block_timestamp


class PortfolioUpdated(ChainEvent):
    event_name: ClassVar[str] = PORTFOLIO_UPDATED

    user: Address
    total_value: UInt = Field(alias="totalValue")


class AlertCreated(ChainEvent):
    event_name: ClassVar[str] = ALERT_CREATED

    user: Address
    alert_type: str | None = Field(default=None, alias="alertType")
    timestamp: Timestamp | None = None

    @property
    def activity_timestamp(self) -> int:
        return self.timestamp if self.timestamp is not None else self.block_timestamp


class Transfer(ChainEvent):
    event_name: ClassVar[str] = TRANSFER

    from_address: Address = Field(alias="from")
    to_address: Address = Field(alias="to")
    value: UInt


class Approval(ChainEvent):
    event_name: ClassVar[str] = APPROVAL

    owner: Address
    spender: Address
    value: UInt


EVENT_TYPES: dict[str, type[ChainEvent]] = {
    event_type.event_name: event_type
    for event_type in (
        UserRegistered,
        PortfolioUpdated,
        AlertCreated,
        Transfer,
        Approval,
    )
}
