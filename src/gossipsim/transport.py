"""
In-process network transport for the simulation.

Endpoints stand in for a node's listening socket and channels for the two
halves of an established connection. Bytes written to a channel are
delivered to the far endpoint's receive callback once the link latency
has elapsed on the logical clock.
"""

import functools
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple, Union

from .scheduler import EventScheduler
from .topology import PeerLink

logger = logging.getLogger(__name__)

ReceiveCallback = Callable[[bytes, "Channel"], None]


class TransportError(ConnectionError):
    """Raised when a channel cannot be established."""


class Endpoint:
    """A node's attachment point to the transport."""

    def __init__(self, node_id: int):
        self.node_id = node_id
        self.open = True
        self.receive_callback: Optional[ReceiveCallback] = None
        self.channels: List["Channel"] = []

    def __repr__(self) -> str:
        state = "open" if self.open else "closed"
        return f"Endpoint(node_id={self.node_id}, {state})"


class Channel:
    """One half of a bidirectional logical connection."""

    def __init__(
        self,
        transport: "SimulatedTransport",
        local: Endpoint,
        remote_id: int,
        latency_ms: float,
    ):
        self.transport = transport
        self.local = local
        self.remote_id = remote_id
        self.latency_ms = latency_ms
        self.open = True
        self.reverse: Optional["Channel"] = None

    @property
    def local_id(self) -> int:
        return self.local.node_id

    @property
    def is_live(self) -> bool:
        return self.open and self.local.open

    def send(self, data: bytes) -> bool:
        return self.transport.send(self, data)

    def close(self) -> None:
        self.transport.close(self)

    def __repr__(self) -> str:
        return f"Channel({self.local_id}->{self.remote_id}, open={self.open})"


class SimulatedTransport:
    """Delivers messages between endpoints after a per-link delay."""

    def __init__(
        self,
        scheduler: EventScheduler,
        latency_ms: float = 5.0,
        drop_rate: float = 0.0,
        seed: Optional[int] = None,
    ):
        if not 0.0 <= drop_rate < 1.0:
            raise ValueError(f"Drop rate must be in [0, 1), got {drop_rate}")

        self.scheduler = scheduler
        self.latency_ms = latency_ms
        self.drop_rate = drop_rate
        self.rng = random.Random(seed)

        self.endpoints: Dict[int, Endpoint] = {}
        self.link_latency: Dict[Tuple[int, int], float] = {}

        # metrics
        self.messages_sent = 0
        self.messages_delivered = 0
        self.messages_dropped = 0
        self.messages_discarded = 0
        self.bytes_sent = 0

    def register_link(self, link: PeerLink) -> None:
        """Record the latency to use for channels over this link."""
        self.link_latency[link.key] = link.latency_ms

    def latency_between(self, a: int, b: int) -> float:
        return self.link_latency.get((min(a, b), max(a, b)), self.latency_ms)

    def open_endpoint(self, node_id: int) -> Endpoint:
        endpoint = self.endpoints.get(node_id)
        if endpoint is not None and endpoint.open:
            return endpoint

        endpoint = Endpoint(node_id)
        self.endpoints[node_id] = endpoint
        logger.debug(f"Opened endpoint for node {node_id}")
        return endpoint

    def on_receive(self, endpoint: Endpoint, callback: ReceiveCallback) -> None:
        endpoint.receive_callback = callback

    def connect(
        self, endpoint: Endpoint, remote_id: int, latency_ms: Optional[float] = None
    ) -> Channel:
        """Establish a channel from ``endpoint`` to node ``remote_id``.

        Returns the local half; the remote half is handed to the remote
        endpoint together with the first message it receives.
        """
        if not endpoint.open:
            raise TransportError(f"Endpoint for node {endpoint.node_id} is closed")

        remote = self.endpoints.get(remote_id)
        if remote is None or not remote.open:
            raise TransportError(
                f"Node {endpoint.node_id} cannot connect to node {remote_id}: "
                f"no open endpoint"
            )

        if latency_ms is None:
            latency_ms = self.latency_between(endpoint.node_id, remote_id)

        local_half = Channel(self, endpoint, remote_id, latency_ms)
        remote_half = Channel(self, remote, endpoint.node_id, latency_ms)
        local_half.reverse = remote_half
        remote_half.reverse = local_half

        endpoint.channels.append(local_half)
        remote.channels.append(remote_half)

        logger.debug(f"Connected node {endpoint.node_id} to node {remote_id}")
        return local_half

    def send(self, channel: Channel, data: bytes) -> bool:
        """Queue ``data`` for delivery; False if either half is closed."""
        remote_half = channel.reverse
        if not channel.is_live or remote_half is None or not remote_half.is_live:
            return False

        self.messages_sent += 1
        self.bytes_sent += len(data)

        if self.drop_rate and self.rng.random() < self.drop_rate:
            self.messages_dropped += 1
            logger.debug(f"Dropped message {channel.local_id}->{channel.remote_id}")
            return True

        self.scheduler.schedule_after(
            channel.latency_ms / 1000.0,
            functools.partial(self._deliver, remote_half, data),
        )
        return True

    def _deliver(self, channel: Channel, data: bytes) -> None:
        callback = channel.local.receive_callback
        if not channel.is_live or callback is None:
            self.messages_discarded += 1
            return

        self.messages_delivered += 1
        callback(data, channel)

    def close(self, handle: Union[Channel, Endpoint]) -> None:
        """Close a single channel, or an endpoint with all of its channels."""
        if isinstance(handle, Endpoint):
            for channel in handle.channels:
                channel.open = False
            handle.open = False
            logger.debug(f"Closed endpoint for node {handle.node_id}")
        else:
            handle.open = False

    @property
    def in_flight(self) -> int:
        return (
            self.messages_sent
            - self.messages_dropped
            - self.messages_delivered
            - self.messages_discarded
        )

    def stats(self) -> Dict[str, int]:
        return {
            "messages_sent": self.messages_sent,
            "messages_delivered": self.messages_delivered,
            "messages_dropped": self.messages_dropped,
            "messages_discarded": self.messages_discarded,
            "bytes_sent": self.bytes_sent,
        }
