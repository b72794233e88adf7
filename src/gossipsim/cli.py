"""Command line entry point for running a gossip simulation."""

import argparse
import json
import logging
import os
from typing import List, Optional

from .config import SimulationConfig
from .simulation import GossipSimulation, SimulationResult

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gossipsim",
        description="Simulate flood gossip of shares across a random P2P overlay.",
    )
    parser.add_argument("--num-nodes", type=int, help="Number of nodes")
    parser.add_argument(
        "--connection-prob",
        type=float,
        dest="connection_probability",
        help="Probability of connection between nodes",
    )
    parser.add_argument(
        "--sim-time",
        type=float,
        dest="simulation_time",
        help="Simulation time in logical seconds",
    )
    parser.add_argument(
        "--latency", type=float, dest="latency_ms", help="Link latency in ms"
    )
    parser.add_argument(
        "--stats-interval", type=float, help="Seconds between periodic statistics"
    )
    parser.add_argument("--seed", type=int, help="Seed for a reproducible run")
    parser.add_argument(
        "--drop-rate", type=float, help="Fraction of messages lost in transit"
    )
    parser.add_argument(
        "--keep-running",
        action="store_true",
        help="Do not stop nodes before the end of the run",
    )
    parser.add_argument(
        "--output", help="Directory for config.json, snapshots.jsonl and summary.json"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("GOSSIPSIM_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> SimulationConfig:
    config = SimulationConfig.from_env().with_overrides(
        num_nodes=args.num_nodes,
        connection_probability=args.connection_probability,
        simulation_time=args.simulation_time,
        latency_ms=args.latency_ms,
        stats_interval=args.stats_interval,
        seed=args.seed,
        drop_rate=args.drop_rate,
    )
    if args.keep_running:
        config = config.with_overrides(stop_nodes_at_end=False)
    config.validate()
    return config


def write_results(result: SimulationResult, outdir: str) -> None:
    """Write the run's config, snapshots and summary under ``outdir``."""
    os.makedirs(outdir, exist_ok=True)

    config_data = result.config.to_dict()
    config_data["seed"] = result.seed
    with open(os.path.join(outdir, "config.json"), "w", encoding="utf-8") as f:
        json.dump(config_data, f, indent=2)

    with open(os.path.join(outdir, "snapshots.jsonl"), "w", encoding="utf-8") as f:
        snapshots = list(result.snapshots)
        if result.final is not None:
            snapshots.append(result.final)
        for snapshot in snapshots:
            f.write(json.dumps(snapshot.to_dict()) + "\n")

    with open(os.path.join(outdir, "summary.json"), "w", encoding="utf-8") as f:
        json.dump(result.summary(), f, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    result = GossipSimulation(config).run()

    coverage = result.coverage
    print(
        f"Simulated {config.num_nodes} nodes for {config.simulation_time}s "
        f"(seed {result.seed})"
    )
    print(
        f"Shares tracked: {len(coverage.shares)}, fully covered: {coverage.fully_covered}, "
        f"average coverage: {coverage.average_coverage:.1%}, "
        f"components: {coverage.num_components}"
    )

    if args.output:
        write_results(result, args.output)
        print(f"Results: {args.output}")

    return 0
