from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .packet import Trace, TraceEntry


RESOLVER_LOCATION = "DNS Resolver"

RECORD_ADDRESS = "A"
RECORD_ALIAS = "CNAME"


@dataclass(frozen=True)
class NameRecord:
    name: str
    kind: str  # A|CNAME
    value: str  # address for A, target name for CNAME


class DNSResolver:
    """Walks A/CNAME records to a final address.

    Every decision is appended to the caller's trace. A name that repeats
    along the chain ends resolution, so no iteration cap is needed.
    """

    def __init__(self, records: Iterable[NameRecord]):
        self.records: List[NameRecord] = list(records)
        # First declared record wins for duplicate names.
        self._by_name: Dict[str, NameRecord] = {}
        for rec in self.records:
            self._by_name.setdefault(rec.name, rec)

    def lookup(self, name: str) -> Optional[NameRecord]:
        return self._by_name.get(name)

    def resolve(self, hostname: str, trace: Trace) -> Optional[str]:
        current = hostname
        visited: Set[str] = set()

        while True:
            if current in visited:
                trace.append(TraceEntry(RESOLVER_LOCATION, f"CNAME loop detected for {current}"))
                return None
            visited.add(current)

            record = self.lookup(current)
            if record is None:
                trace.append(TraceEntry(RESOLVER_LOCATION, f"NXDOMAIN: {current} not found"))
                return None

            if record.kind == RECORD_ADDRESS:
                trace.append(TraceEntry(RESOLVER_LOCATION, f"Resolved {hostname} to {record.value}"))
                return record.value

            if record.kind == RECORD_ALIAS:
                trace.append(TraceEntry(RESOLVER_LOCATION, f"CNAME: {current} → {record.value}"))
                current = record.value
                continue

            trace.append(TraceEntry(RESOLVER_LOCATION, f"Unsupported DNS record format for {current}"))
            return None


__all__ = ["NameRecord", "DNSResolver", "RECORD_ADDRESS", "RECORD_ALIAS", "RESOLVER_LOCATION"]
