from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional


@dataclass(frozen=True)
class TraceEntry:
    location: str  # DNS Resolver|Router-N|<router name>|Firewall|Destination Host
    action: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


Trace = List[TraceEntry]


@dataclass
class Packet:
    source_address: str
    destination_port: int
    protocol: str
    ttl: int
    destination_address: Optional[str] = None  # set once resolved

    @property
    def protocol_token(self) -> str:
        return (self.protocol or "").strip().upper()


__all__ = ["TraceEntry", "Trace", "Packet"]
