"""Run parameters for a gossip simulation."""

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Optional

ENV_PREFIX = "GOSSIPSIM_"


@dataclass
class SimulationConfig:
    """Parameters of a single simulation run.

    Times are logical-time units (seconds); latency is in milliseconds.
    """

    num_nodes: int = 10
    connection_probability: float = 0.3
    simulation_time: float = 60.0
    latency_ms: float = 5.0
    stats_interval: float = 10.0
    seed: Optional[int] = None
    min_share_interval: float = 2.0
    max_share_interval: float = 5.0
    drop_rate: float = 0.0
    stop_nodes_at_end: bool = True

    def validate(self) -> None:
        """Raise ValueError describing the first invalid parameter."""
        if self.num_nodes < 2:
            raise ValueError(f"num_nodes must be at least 2, got {self.num_nodes}")
        if not 0.0 <= self.connection_probability <= 1.0:
            raise ValueError(
                "connection_probability must be in [0, 1], "
                f"got {self.connection_probability}"
            )
        if self.latency_ms < 0:
            raise ValueError(f"latency_ms must be non-negative, got {self.latency_ms}")
        if self.simulation_time <= 0:
            raise ValueError(
                f"simulation_time must be positive, got {self.simulation_time}"
            )
        if self.stats_interval <= 0:
            raise ValueError(f"stats_interval must be positive, got {self.stats_interval}")
        if not 0 < self.min_share_interval <= self.max_share_interval:
            raise ValueError(
                "share interval must satisfy 0 < min <= max, got "
                f"[{self.min_share_interval}, {self.max_share_interval}]"
            )
        if not 0.0 <= self.drop_rate < 1.0:
            raise ValueError(f"drop_rate must be in [0, 1), got {self.drop_rate}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_overrides(self, **overrides: Any) -> "SimulationConfig":
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "SimulationConfig":
        """Build a config from ``GOSSIPSIM_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str, default: Any) -> str:
            return env.get(f"{ENV_PREFIX}{name}", str(default))

        seed = env.get(f"{ENV_PREFIX}SEED")

        return cls(
            num_nodes=int(get("NUM_NODES", defaults.num_nodes)),
            connection_probability=float(
                get("CONNECTION_PROB", defaults.connection_probability)
            ),
            simulation_time=float(get("SIM_TIME", defaults.simulation_time)),
            latency_ms=float(get("LATENCY_MS", defaults.latency_ms)),
            stats_interval=float(get("STATS_INTERVAL", defaults.stats_interval)),
            seed=int(seed) if seed else None,
            min_share_interval=float(
                get("MIN_SHARE_INTERVAL", defaults.min_share_interval)
            ),
            max_share_interval=float(
                get("MAX_SHARE_INTERVAL", defaults.max_share_interval)
            ),
            drop_rate=float(get("DROP_RATE", defaults.drop_rate)),
            stop_nodes_at_end=get("STOP_NODES_AT_END", "true").lower()
            in ("1", "true", "yes"),
        )
