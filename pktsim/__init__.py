"""Deterministic packet path simulator.

Resolves a destination, picks a route by longest prefix match, evaluates
ordered firewall rules and returns a hop-by-hop trace.
"""

from .core import PacketTracer
from .cli import TraceCLIEngine
from .config import ConfigError, NetworkConfig, TraceRequest, load_network_config

__all__ = [
    "PacketTracer",
    "TraceCLIEngine",
    "ConfigError",
    "NetworkConfig",
    "TraceRequest",
    "load_network_config",
]
