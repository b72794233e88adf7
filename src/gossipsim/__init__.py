"""
Gossipsim - flood gossip simulation over random peer-to-peer overlays

This library simulates shares flooding across a generated overlay on a
logical clock and measures coverage, message volume and per-node load.
"""

__version__ = "0.1.0"

from .config import SimulationConfig
from .gossip import GossipNode, NodeStats
from .scheduler import CancellationToken, EventScheduler, RepeatingTask
from .share import MessageKind, Registration, Share, ShareIdentity, decode_message
from .simulation import CoverageReport, GossipSimulation, NetworkSnapshot
from .topology import PeerLink, Topology, TopologyGenerator
from .transport import Channel, Endpoint, SimulatedTransport, TransportError

__all__ = [
    "SimulationConfig",
    "GossipNode",
    "NodeStats",
    "CancellationToken",
    "EventScheduler",
    "RepeatingTask",
    "MessageKind",
    "Registration",
    "Share",
    "ShareIdentity",
    "decode_message",
    "CoverageReport",
    "GossipSimulation",
    "NetworkSnapshot",
    "PeerLink",
    "Topology",
    "TopologyGenerator",
    "Channel",
    "Endpoint",
    "SimulatedTransport",
    "TransportError",
]


def main() -> None:
    """CLI entry point for gossipsim."""
    from .cli import main as cli_main

    raise SystemExit(cli_main())
