"""
Random overlay topology generation.

Every unordered pair of nodes is linked with a fixed probability. A
fallback pass then gives each node left without peers one link to a
uniformly chosen other node. The result guarantees a minimum degree of
one; it does not guarantee a single connected component, and isolated
clusters are kept as generated.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import networkx as nx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerLink:
    """Undirected link between two nodes, stored with ``node_a < node_b``."""

    node_a: int
    node_b: int
    latency_ms: float

    @classmethod
    def between(cls, a: int, b: int, latency_ms: float) -> "PeerLink":
        if a == b:
            raise ValueError(f"Self-loop link on node {a}")
        return cls(min(a, b), max(a, b), latency_ms)

    @property
    def key(self) -> tuple:
        return (self.node_a, self.node_b)

    def other(self, node_id: int) -> int:
        if node_id == self.node_a:
            return self.node_b
        if node_id == self.node_b:
            return self.node_a
        raise ValueError(f"Node {node_id} is not an endpoint of {self.key}")


@dataclass
class Topology:
    """A symmetric peer-link set over node ids ``0..num_nodes-1``."""

    num_nodes: int
    links: List[PeerLink] = field(default_factory=list)
    adjacency: Dict[int, List[int]] = field(default_factory=dict)
    fallback_links: List[PeerLink] = field(default_factory=list)

    def __post_init__(self):
        for node_id in range(self.num_nodes):
            self.adjacency.setdefault(node_id, [])

    def has_link(self, a: int, b: int) -> bool:
        return b in self.adjacency.get(a, [])

    def add_link(self, a: int, b: int, latency_ms: float) -> Optional[PeerLink]:
        """Add an undirected link; returns None if the pair is already linked."""
        link = PeerLink.between(a, b, latency_ms)
        if self.has_link(a, b):
            return None

        self.links.append(link)
        self.adjacency[a].append(b)
        self.adjacency[b].append(a)
        return link

    def neighbors(self, node_id: int) -> List[int]:
        return list(self.adjacency[node_id])

    def degree(self, node_id: int) -> int:
        return len(self.adjacency[node_id])

    @property
    def min_degree(self) -> int:
        return min((len(peers) for peers in self.adjacency.values()), default=0)

    @property
    def average_degree(self) -> float:
        if not self.num_nodes:
            return 0.0
        return 2.0 * len(self.links) / self.num_nodes

    def to_graph(self) -> nx.Graph:
        """Build a networkx graph with ``latency_ms`` edge attributes."""
        graph = nx.Graph()
        graph.add_nodes_from(range(self.num_nodes))
        for link in self.links:
            graph.add_edge(link.node_a, link.node_b, latency_ms=link.latency_ms)
        return graph

    def components(self) -> List[Set[int]]:
        """Connected components, largest first."""
        return sorted(nx.connected_components(self.to_graph()), key=len, reverse=True)

    def component_of(self, node_id: int) -> Set[int]:
        return set(nx.node_connected_component(self.to_graph(), node_id))

    def is_connected(self) -> bool:
        return self.num_nodes > 0 and nx.is_connected(self.to_graph())


class TopologyGenerator:
    """Builds a random overlay with every node holding at least one peer."""

    def __init__(
        self,
        num_nodes: int,
        connection_probability: float = 0.3,
        latency_ms: float = 5.0,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        if num_nodes < 2:
            raise ValueError(f"Need at least 2 nodes to build a topology, got {num_nodes}")
        if not 0.0 <= connection_probability <= 1.0:
            raise ValueError(
                f"Connection probability must be in [0, 1], got {connection_probability}"
            )
        if latency_ms < 0:
            raise ValueError(f"Latency must be non-negative, got {latency_ms}")

        self.num_nodes = num_nodes
        self.connection_probability = connection_probability
        self.latency_ms = latency_ms
        self.rng = rng or random.Random(seed)

    def generate(self) -> Topology:
        topology = Topology(num_nodes=self.num_nodes)

        for i in range(self.num_nodes):
            for j in range(i + 1, self.num_nodes):
                if self.rng.random() < self.connection_probability:
                    topology.add_link(i, j, self.latency_ms)
                    logger.debug(
                        f"Created link between nodes {i} and {j} "
                        f"with latency {self.latency_ms}ms"
                    )

        for i in range(self.num_nodes):
            if topology.degree(i) > 0:
                continue

            j = self.rng.randrange(self.num_nodes)
            while j == i:
                j = self.rng.randrange(self.num_nodes)

            link = topology.add_link(i, j, self.latency_ms)
            topology.fallback_links.append(link)
            logger.info(
                f"Created additional link between nodes {i} and {j} "
                f"with latency {self.latency_ms}ms"
            )

        logger.info(
            f"Generated topology: {self.num_nodes} nodes, {len(topology.links)} links, "
            f"average degree {topology.average_degree:.2f}"
        )
        return topology
