"""
Raw feed events.

The untyped envelope delivered by a feed adapter, before dispatch.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from indexer.events.identity import EventKey
from indexer.utils.exceptions import MalformedEventError


class RawEvent(BaseModel):
    """Decoded contract event as delivered by the feed."""

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(gt=0)
    block_number: int = Field(ge=0)
    log_index: int = Field(ge=0)
    block_timestamp: int = Field(ge=0)
    transaction_hash: str
    contract: str
    event_name: str
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> EventKey:
        return EventKey(self.chain_id, self.block_number, self.log_index)

    @property
    def event_id(self) -> str:
        return self.key.event_id

    @classmethod
    def from_feed(cls, payload: Mapping[str, Any]) -> "RawEvent":
        """
        Build from the nested feed shape.

        Accepts `chainId`, `block.number`, `block.timestamp`, `logIndex`,
        `transaction.hash`, `event.name`, `event.params` and the contract
        identifier in `contract` or `srcAddress`. Flat snake_case keys
        are accepted as well.

        Raises:
            MalformedEventError: If a required field is missing or ill-typed
        """
        try:
            block = payload.get("block") or {}
            transaction = payload.get("transaction") or {}
            event = payload.get("event") or {}
            data = {
                "chain_id": payload.get("chainId", payload.get("chain_id")),
                "block_number": block.get("number", payload.get("block_number")),
                "block_timestamp": block.get(
                    "timestamp", payload.get("block_timestamp")
                ),
                "log_index": payload.get("logIndex", payload.get("log_index")),
                "transaction_hash": transaction.get(
                    "hash", payload.get("transaction_hash")
                ),
                "contract": (
                    payload.get("contract")
                    or payload.get("srcAddress")
                    or event.get("contract")
                ),
                "event_name": event.get("name", payload.get("event_name")),
                "params": event.get("params", payload.get("params", {})),
            }
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedEventError(
                f"Malformed feed event: {e.error_count()} invalid field(s): {e}"
            ) from e
        except (AttributeError, TypeError) as e:
            raise MalformedEventError(f"Malformed feed event: {e}") from e
