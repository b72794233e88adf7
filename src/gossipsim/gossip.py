"""Gossip node state machine: share generation, deduplication and flooding."""

import logging
import random
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Set

from .scheduler import CancellationToken, EventScheduler, RepeatingTask
from .share import MessageKind, Registration, Share, ShareIdentity, decode_message
from .transport import Channel, Endpoint, SimulatedTransport


@dataclass
class NodeStats:
    """Point-in-time counters of a single node."""

    node_id: int
    generated: int
    received: int
    forwarded: int
    sent: int
    processed: int
    peer_count: int
    channel_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class GossipNode:
    """A peer that floods every share it sees for the first time."""

    def __init__(
        self,
        node_id: int,
        scheduler: EventScheduler,
        seed: Optional[int] = None,
        min_share_interval: float = 2.0,
        max_share_interval: float = 5.0,
    ) -> None:
        """Initialize a gossip node."""
        self.node_id = node_id
        self.scheduler = scheduler
        self.min_share_interval = min_share_interval
        self.max_share_interval = max_share_interval
        self.rng = random.Random(seed)

        self.peers: List[int] = []
        self.peer_channels: Dict[int, Channel] = {}
        self.processed: Set[ShareIdentity] = set()
        # first logical time each processed share was seen here
        self.arrival_times: Dict[ShareIdentity, float] = {}

        self.transport: Optional[SimulatedTransport] = None
        self.endpoint: Optional[Endpoint] = None

        self.running = False
        self._next_share_id = 1
        self._generation_token: Optional[CancellationToken] = None
        self._generation_task: Optional[RepeatingTask] = None

        # metrics
        self.shares_generated = 0
        self.shares_sent = 0
        self.shares_received = 0
        self.shares_forwarded = 0

        self.logger = logging.getLogger(f"gossipsim.node.{node_id}")

    def add_peer(self, peer_id: int) -> None:
        """Add a peer to this node's peer list."""
        if peer_id == self.node_id:
            return
        if peer_id not in self.peers:
            self.peers.append(peer_id)

    def add_peer_channel(self, peer_id: int, channel: Channel) -> None:
        self.peer_channels[peer_id] = channel
        self.logger.debug(f"Node {self.node_id} added channel to peer {peer_id}")

    def attach(self, transport: SimulatedTransport) -> Endpoint:
        """Open this node's endpoint and route inbound messages to receive()."""
        self.transport = transport
        self.endpoint = transport.open_endpoint(self.node_id)
        transport.on_receive(self.endpoint, self.receive)
        return self.endpoint

    def connect_to(self, peer_id: int) -> Channel:
        """Open a channel to a peer and announce ourselves over it."""
        if self.transport is None or self.endpoint is None:
            raise RuntimeError(f"Node {self.node_id} is not attached to a transport")

        channel = self.transport.connect(self.endpoint, peer_id)
        self.add_peer_channel(peer_id, channel)
        self.add_peer(peer_id)

        registration = Registration(node_id=self.node_id)
        channel.send(registration.encode())
        return channel

    def next_share_delay(self) -> float:
        return self.rng.uniform(self.min_share_interval, self.max_share_interval)

    def start_generating(self) -> None:
        """Begin offering a new share every few logical-time units."""
        if self.running:
            return

        self.running = True
        self._generation_token = CancellationToken()
        self._generation_task = self.scheduler.schedule_repeating(
            self.generate_and_gossip,
            self.next_share_delay,
            token=self._generation_token,
        )

    def generate_and_gossip(self) -> None:
        """Create a fresh share and flood it to every peer."""
        if not self.running:
            return

        if not self.peers:
            self.logger.info(f"Node {self.node_id} has no peers to send shares to")
            return

        share = Share(
            identity=ShareIdentity(self.node_id, self._allocate_share_id()),
            timestamp=self.scheduler.now(),
        )
        self._record(share)
        self.shares_generated += 1

        self.logger.debug(f"Node {self.node_id} generating new share {share.identity}")
        self.flood_to_peers(share)

    def _allocate_share_id(self) -> int:
        share_id = self._next_share_id
        self._next_share_id += 1
        return share_id

    def _record(self, share: Share) -> None:
        self.processed.add(share.identity)
        self.arrival_times[share.identity] = self.scheduler.now()
        share.visited_nodes.add(self.node_id)

    def receive(self, data: bytes, channel: Optional[Channel] = None) -> None:
        """Handle a raw inbound message from the transport."""
        message = decode_message(data)

        if message.kind == MessageKind.REGISTER:
            self._handle_registration(message.node_id, channel)
            return

        self.shares_received += 1

        if message.identity in self.processed:
            self.logger.debug(
                f"Node {self.node_id} already processed share {message.identity}"
            )
            return

        self._record(message)
        self.logger.debug(
            f"Node {self.node_id} received new share {message.identity}:"
            f"{message.timestamp} from origin {message.origin_node_id}"
        )

        self.shares_forwarded += 1
        self.flood_to_peers(message)

    def _handle_registration(self, peer_id: int, channel: Optional[Channel]) -> None:
        self.logger.debug(f"Node {self.node_id} received registration from peer {peer_id}")
        if channel is not None:
            self.add_peer_channel(peer_id, channel)
        self.add_peer(peer_id)

    def flood_to_peers(self, share: Share) -> None:
        """Send a share to every peer with a live channel.

        A failed send drops the peer's channel; the peer id stays in the
        peer list and is skipped by later floods.
        """
        data = share.encode()

        for peer_id in self.peers:
            channel = self.peer_channels.get(peer_id)
            if channel is None:
                self.logger.debug(
                    f"Node {self.node_id} has no channel to peer {peer_id}"
                )
                continue

            if channel.send(data):
                self.shares_sent += 1
                self.logger.debug(
                    f"Node {self.node_id} sending share {share.identity} to peer {peer_id}"
                )
            else:
                self.logger.warning(
                    f"Node {self.node_id} failed to send share to peer {peer_id}"
                )
                del self.peer_channels[peer_id]

    def stop(self) -> None:
        """Stop generating shares and release every transport handle."""
        self.running = False
        if self._generation_token is not None:
            self._generation_token.cancel()

        for channel in self.peer_channels.values():
            channel.close()
        self.peer_channels.clear()

        if self.transport is not None and self.endpoint is not None:
            self.transport.close(self.endpoint)

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def channel_count(self) -> int:
        return len(self.peer_channels)

    def stats(self) -> NodeStats:
        return NodeStats(
            node_id=self.node_id,
            generated=self.shares_generated,
            received=self.shares_received,
            forwarded=self.shares_forwarded,
            sent=self.shares_sent,
            processed=self.processed_count,
            peer_count=len(self.peers),
            channel_count=self.channel_count,
        )
