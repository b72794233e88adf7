#!/usr/bin/env python3
"""
Example usage of the gossipsim simulation.

Builds a small random overlay, floods shares across it for a minute of
logical time and prints how far the shares spread.
"""

import logging

from gossipsim import GossipSimulation, SimulationConfig


def main():
    """Run a flood gossip example."""
    logging.basicConfig(level=logging.WARNING)

    config = SimulationConfig(
        num_nodes=20,
        connection_probability=0.15,
        simulation_time=60.0,
        latency_ms=5.0,
        stats_interval=10.0,
        seed=2024,
    )

    print(f"🚀 Simulating {config.num_nodes} nodes for {config.simulation_time}s")
    sim = GossipSimulation(config)
    result = sim.run()

    topology = result.topology
    print(f"   Links: {len(topology.links)} (average degree {topology.average_degree:.2f})")
    print(f"   Components: {len(topology.components())}")
    print()

    for snapshot in result.snapshots:
        print(
            f"📊 t={snapshot.time:5.1f}s generated={snapshot.total_generated:4d} "
            f"sent={snapshot.total_sent:5d} avg processed={snapshot.average_processed:.1f}"
        )

    coverage = result.coverage
    print()
    print(f"✅ {coverage.fully_covered}/{len(coverage.shares)} shares reached their whole component")
    print(f"   Average coverage: {coverage.average_coverage:.1%}")
    print(f"   Mean propagation delay: {coverage.mean_propagation_delay * 1000:.1f}ms")
    print(f"   Max propagation delay: {coverage.max_propagation_delay * 1000:.1f}ms")


if __name__ == "__main__":
    main()
