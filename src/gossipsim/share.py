"""
Share identity and wire format for the gossip simulation.

A share travels between nodes as a colon-delimited text record. A second,
separately tagged message kind carries peer registration, so a receiver
can route it before attempting to decode a share:

    REGISTER:<nodeId>
    SHARE:<originNodeId>:<shareId>:<timestamp>

Malformed input never raises; it decodes to the all-zero default share.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Set, Union

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ":"


class MessageKind(Enum):
    """Tags distinguishing the two message variants on the wire"""

    REGISTER = "REGISTER"
    SHARE = "SHARE"


@dataclass(frozen=True)
class ShareIdentity:
    """Identity of a share: origin node plus the origin's local sequence number."""

    origin_node_id: int
    share_id: int

    def __str__(self) -> str:
        return f"{self.origin_node_id}:{self.share_id}"


@dataclass(eq=False)
class Share:
    """A gossiped content unit.

    Equality and hashing follow the identity only; the timestamp and the
    visited-node trace are diagnostics.
    """

    identity: ShareIdentity
    timestamp: float = 0.0
    visited_nodes: Set[int] = field(default_factory=set)

    kind = MessageKind.SHARE

    @property
    def origin_node_id(self) -> int:
        return self.identity.origin_node_id

    @property
    def share_id(self) -> int:
        return self.identity.share_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Share):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    @classmethod
    def default(cls) -> "Share":
        """The share produced when decoding fails."""
        return cls(identity=ShareIdentity(0, 0), timestamp=0.0)

    @property
    def is_default(self) -> bool:
        return self.identity == ShareIdentity(0, 0) and self.timestamp == 0.0

    def to_string(self) -> str:
        """Serialize to ``SHARE:<origin>:<share_id>:<timestamp>``."""
        return FIELD_SEPARATOR.join(
            [
                MessageKind.SHARE.value,
                str(self.origin_node_id),
                str(self.share_id),
                repr(float(self.timestamp)),
            ]
        )

    def encode(self) -> bytes:
        return self.to_string().encode("utf-8")

    @classmethod
    def from_string(cls, data: str) -> "Share":
        """Parse a share record, falling back to the default share."""
        parts = data.split(FIELD_SEPARATOR, 3)
        if len(parts) != 4:
            logger.debug(f"Malformed share record (missing fields): {data!r}")
            return cls.default()

        try:
            origin = int(parts[1])
            share_id = int(parts[2])
            timestamp = float(parts[3])
        except ValueError:
            logger.debug(f"Malformed share record (bad field): {data!r}")
            return cls.default()

        return cls(identity=ShareIdentity(origin, share_id), timestamp=timestamp)


@dataclass(frozen=True)
class Registration:
    """Control message announcing the sender's node id over a new channel."""

    node_id: int

    kind = MessageKind.REGISTER

    def to_string(self) -> str:
        return f"{MessageKind.REGISTER.value}{FIELD_SEPARATOR}{self.node_id}"

    def encode(self) -> bytes:
        return self.to_string().encode("utf-8")


Message = Union[Registration, Share]


def decode_message(data: Union[bytes, str]) -> Message:
    """Decode raw wire data into a Registration or a Share."""
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Undecodable message bytes: {data!r}")
            return Share.default()

    tag, _, rest = data.partition(FIELD_SEPARATOR)
    if tag == MessageKind.REGISTER.value:
        try:
            return Registration(node_id=int(rest))
        except ValueError:
            logger.debug(f"Malformed registration: {data!r}")
            return Share.default()

    return Share.from_string(data)
