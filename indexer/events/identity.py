"""
Event identity.

Derives the globally unique, totally ordered key of an event from
(chain_id, block_number, log_index).
"""

from typing import NamedTuple


class EventKey(NamedTuple):
    """
    Ordering key of an on-chain event.

    Tuple comparison orders keys by chain, then block, then log index,
    so keys of one chain sort in stream order.
    """

    chain_id: int
    block_number: int
    log_index: int

    @property
    def event_id(self) -> str:
        """Identity string "{chain_id}_{block_number}_{log_index}"."""
        return f"{self.chain_id}_{self.block_number}_{self.log_index}"

    @property
    def position(self) -> tuple[int, int]:
        """Position within the chain's stream."""
        return (self.block_number, self.log_index)

    @classmethod
    def parse(cls, event_id: str) -> "EventKey":
        """
        Parse an identity string back into a key.

        Raises:
            ValueError: If the string is not "{int}_{int}_{int}"
        """
        parts = event_id.split("_")
        if len(parts) != 3:
            raise ValueError(f"Invalid event id: {event_id!r}")
        chain_id, block_number, log_index = (int(part) for part in parts)
        return cls(chain_id, block_number, log_index)

    def __str__(self) -> str:
        return self.event_id


def event_id_for(chain_id: int, block_number: int, log_index: int) -> str:
    """Build an identity string without constructing a key."""
    return EventKey(chain_id, block_number, log_index).event_id
