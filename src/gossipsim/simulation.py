"""
Gossip network simulation orchestrator.

Owns the node set, wires a generated topology into node peer lists and
transport channels, drives the logical clock for a bounded run and
aggregates node counters into snapshots.
"""

import logging
import random
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set

from .config import SimulationConfig
from .gossip import GossipNode, NodeStats
from .scheduler import EventScheduler
from .share import ShareIdentity
from .topology import Topology, TopologyGenerator
from .transport import SimulatedTransport

logger = logging.getLogger(__name__)

# final statistics and node shutdown happen this long before the horizon
FINAL_STATS_OFFSET = 0.1


@dataclass
class NetworkSnapshot:
    """Aggregated node counters at one logical instant."""

    time: float
    total_generated: int
    total_received: int
    total_forwarded: int
    total_sent: int
    total_processed: int
    average_processed: float
    total_channels: int
    nodes: List[NodeStats] = field(default_factory=list)
    transport: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ShareCoverage:
    """How far one share spread within its origin's component."""

    identity: ShareIdentity
    created_at: float
    reached: int
    component_size: int
    propagation_delay: float

    @property
    def coverage(self) -> float:
        if not self.component_size:
            return 0.0
        return self.reached / self.component_size

    def to_dict(self) -> Dict[str, Any]:
        return {
            "origin_node_id": self.identity.origin_node_id,
            "share_id": self.identity.share_id,
            "created_at": self.created_at,
            "reached": self.reached,
            "component_size": self.component_size,
            "coverage": self.coverage,
            "propagation_delay": self.propagation_delay,
        }


@dataclass
class CoverageReport:
    num_components: int
    shares: List[ShareCoverage] = field(default_factory=list)

    @property
    def average_coverage(self) -> float:
        if not self.shares:
            return 0.0
        return sum(s.coverage for s in self.shares) / len(self.shares)

    @property
    def fully_covered(self) -> int:
        return sum(1 for s in self.shares if s.reached == s.component_size)

    @property
    def mean_propagation_delay(self) -> float:
        if not self.shares:
            return 0.0
        return sum(s.propagation_delay for s in self.shares) / len(self.shares)

    @property
    def max_propagation_delay(self) -> float:
        return max((s.propagation_delay for s in self.shares), default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_components": self.num_components,
            "shares_tracked": len(self.shares),
            "fully_covered": self.fully_covered,
            "average_coverage": self.average_coverage,
            "mean_propagation_delay": self.mean_propagation_delay,
            "max_propagation_delay": self.max_propagation_delay,
        }


@dataclass
class SimulationResult:
    config: SimulationConfig
    seed: int
    topology: Topology
    snapshots: List[NetworkSnapshot]
    final: Optional[NetworkSnapshot]
    coverage: CoverageReport

    def summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "seed": self.seed,
            "num_nodes": self.config.num_nodes,
            "num_links": len(self.topology.links),
            "average_degree": self.topology.average_degree,
            "coverage": self.coverage.to_dict(),
        }
        if self.final is not None:
            summary.update(
                {
                    "total_generated": self.final.total_generated,
                    "total_received": self.final.total_received,
                    "total_forwarded": self.final.total_forwarded,
                    "total_sent": self.final.total_sent,
                    "average_processed": self.final.average_processed,
                    "transport": self.final.transport,
                }
            )
        return summary


class GossipSimulation:
    """Builds and runs a flood-gossip network over a logical clock."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        scheduler: Optional[EventScheduler] = None,
    ):
        self.config = config or SimulationConfig()
        self.scheduler = scheduler or EventScheduler()

        if self.config.seed is None:
            self.seed = random.SystemRandom().randrange(2**32)
        else:
            self.seed = self.config.seed

        self.transport = SimulatedTransport(
            self.scheduler,
            latency_ms=self.config.latency_ms,
            drop_rate=self.config.drop_rate,
            seed=self.seed + 1,
        )

        self.nodes: List[GossipNode] = []
        self.topology: Optional[Topology] = None
        self.snapshots: List[NetworkSnapshot] = []
        self.final_snapshot: Optional[NetworkSnapshot] = None

    def build(self, num_nodes: Optional[int] = None) -> List[GossipNode]:
        """Create the node set with empty peer lists."""
        if num_nodes is None:
            num_nodes = self.config.num_nodes

        self.nodes = [
            GossipNode(
                node_id=i,
                scheduler=self.scheduler,
                seed=self.seed * 1000 + i,
                min_share_interval=self.config.min_share_interval,
                max_share_interval=self.config.max_share_interval,
            )
            for i in range(num_nodes)
        ]
        logger.info(f"Created {num_nodes} gossip nodes (seed {self.seed})")
        return self.nodes

    def create_random_topology(
        self,
        connection_probability: Optional[float] = None,
        latency_ms: Optional[float] = None,
    ) -> Topology:
        """Generate a random overlay and wire it into the nodes."""
        if connection_probability is None:
            connection_probability = self.config.connection_probability
        if latency_ms is None:
            latency_ms = self.config.latency_ms

        generator = TopologyGenerator(
            num_nodes=len(self.nodes),
            connection_probability=connection_probability,
            latency_ms=latency_ms,
            seed=self.seed,
        )
        topology = generator.generate()
        self.wire_topology(topology)
        return topology

    def wire_topology(self, topology: Topology) -> None:
        """Inject links into peer lists and open a channel per link."""
        if topology.num_nodes != len(self.nodes):
            raise ValueError(
                f"Topology has {topology.num_nodes} nodes, "
                f"simulation has {len(self.nodes)}"
            )

        for link in topology.links:
            self.transport.register_link(link)
            self.nodes[link.node_a].add_peer(link.node_b)
            self.nodes[link.node_b].add_peer(link.node_a)

        for node in self.nodes:
            node.attach(self.transport)

        for link in topology.links:
            self.nodes[link.node_a].connect_to(link.node_b)

        self.topology = topology

    def start(
        self,
        simulation_time: Optional[float] = None,
        stats_interval: Optional[float] = None,
    ) -> None:
        """Run every node until ``simulation_time`` has elapsed."""
        if simulation_time is None:
            simulation_time = self.config.simulation_time
        if stats_interval is None:
            stats_interval = self.config.stats_interval
        if simulation_time <= 0:
            raise ValueError(f"Simulation time must be positive, got {simulation_time}")
        if stats_interval <= 0:
            raise ValueError(f"Stats interval must be positive, got {stats_interval}")

        for node in self.nodes:
            node.start_generating()

        tick = 1
        while tick * stats_interval < simulation_time:
            self.scheduler.schedule_after(tick * stats_interval, self.periodic_stats)
            tick += 1

        final_delay = max(simulation_time - FINAL_STATS_OFFSET, 0.0)
        self.scheduler.schedule_after(final_delay, self.final_stats)
        if self.config.stop_nodes_at_end:
            self.scheduler.schedule_after(final_delay, self.stop_all_nodes)

        logger.info(f"Starting gossip network simulation for {simulation_time} seconds")
        self.scheduler.run_until(self.scheduler.now() + simulation_time)

    def stop_all_nodes(self) -> None:
        for node in self.nodes:
            node.stop()
        logger.info("All nodes stopped.")

    def snapshot(self, include_transport: bool = False) -> NetworkSnapshot:
        """Read every node's counters without touching node state."""
        node_stats = [node.stats() for node in self.nodes]
        total_processed = sum(s.processed for s in node_stats)

        return NetworkSnapshot(
            time=self.scheduler.now(),
            total_generated=sum(s.generated for s in node_stats),
            total_received=sum(s.received for s in node_stats),
            total_forwarded=sum(s.forwarded for s in node_stats),
            total_sent=sum(s.sent for s in node_stats),
            total_processed=total_processed,
            average_processed=total_processed / len(node_stats) if node_stats else 0.0,
            total_channels=sum(s.channel_count for s in node_stats),
            nodes=node_stats,
            transport=self.transport.stats() if include_transport else {},
        )

    def periodic_stats(self) -> NetworkSnapshot:
        snapshot = self.snapshot()
        self.snapshots.append(snapshot)

        logger.info(f"=== Periodic Stats at {snapshot.time:.1f}s ===")
        logger.info(f"Total shares generated: {snapshot.total_generated}")
        logger.info(f"Average shares per node: {snapshot.average_processed:.2f}")
        logger.info(f"Total socket connections: {snapshot.total_channels}")
        return snapshot

    def final_stats(self) -> NetworkSnapshot:
        snapshot = self.snapshot(include_transport=True)
        self.final_snapshot = snapshot

        logger.info("=== P2P Gossip Network Simulation Statistics ===")
        for s in snapshot.nodes:
            logger.info(
                f"Node {s.node_id}: Generated {s.generated}, Received {s.received}, "
                f"Forwarded {s.forwarded}, Total sent {s.sent}, "
                f"Total processed {s.processed}, Peer count {s.peer_count}, "
                f"Socket connections {s.channel_count}"
            )

        logger.info(f"Total shares generated: {snapshot.total_generated}")
        logger.info(f"Total shares received: {snapshot.total_received}")
        logger.info(f"Total shares forwarded: {snapshot.total_forwarded}")
        logger.info(f"Total shares sent: {snapshot.total_sent}")
        logger.info(f"Total socket connections: {snapshot.total_channels}")
        return snapshot

    def coverage_report(self) -> CoverageReport:
        """Measure how far each generated share spread in its component."""
        if self.topology is None:
            raise RuntimeError("No topology has been wired into the simulation")

        components = self.topology.components()
        component_of: Dict[int, Set[int]] = {}
        for component in components:
            for node_id in component:
                component_of[node_id] = component

        report = CoverageReport(num_components=len(components))
        for origin in self.nodes:
            component = component_of[origin.node_id]
            for identity, created_at in origin.arrival_times.items():
                # share ids start at 1, (0, 0) is the malformed-message default
                if identity.origin_node_id != origin.node_id or identity.share_id == 0:
                    continue

                arrivals = [
                    self.nodes[node_id].arrival_times[identity]
                    for node_id in component
                    if identity in self.nodes[node_id].processed
                ]
                report.shares.append(
                    ShareCoverage(
                        identity=identity,
                        created_at=created_at,
                        reached=len(arrivals),
                        component_size=len(component),
                        propagation_delay=max(arrivals) - created_at,
                    )
                )

        report.shares.sort(key=lambda s: (s.created_at, s.identity.origin_node_id))
        return report

    def run(self) -> SimulationResult:
        """Build, wire and run a simulation from the configuration."""
        self.config.validate()
        self.build()
        topology = self.create_random_topology()
        self.start()

        return SimulationResult(
            config=self.config,
            seed=self.seed,
            topology=topology,
            snapshots=list(self.snapshots),
            final=self.final_snapshot,
            coverage=self.coverage_report(),
        )
