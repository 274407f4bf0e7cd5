from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import json


SCHEMA = "packet-tracer-session-log/v2"

# (prefix of the final action, outcome); first match wins.
OUTCOME_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("Packet delivered to", "delivered"),
    ("Packet blocked by rule", "blocked"),
    ("No matching rule, default deny", "blocked"),
    ("NXDOMAIN:", "nxdomain"),
    ("CNAME loop detected", "cname-loop"),
    ("Unsupported DNS record format", "unsupported-record"),
    ("No route to host", "no-route"),
    ("Time To Live (TTL) exceeded", "ttl-exceeded"),
)


def classify_outcome(action: str) -> str:
    """Map the last trace action to a short outcome tag ('unknown' if none fits)."""
    for prefix, outcome in OUTCOME_PREFIXES:
        if action.startswith(prefix):
            return outcome
    return "unknown"


@dataclass(frozen=True)
class TraceEvent:
    """One completed trace: what was asked and where it ended."""

    ts: str
    source_address: str
    destination: str
    destination_port: int
    protocol: str
    ttl: int
    entries: int
    outcome: str
    final_location: str
    final_action: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {
            "ts": d["ts"],
            "sourceAddress": d["source_address"],
            "destination": d["destination"],
            "destinationPort": d["destination_port"],
            "protocol": d["protocol"],
            "timeToLive": d["ttl"],
            "entries": d["entries"],
            "outcome": d["outcome"],
            "finalLocation": d["final_location"],
            "finalAction": d["final_action"],
        }


class SessionLogger:
    """Bounded record of the traces run by a shell or server session.

    Only the newest `max_events` traces are kept. Saved as JSON on request.
    """

    def __init__(self, max_events: int = 5000):
        self.max_events = max_events
        self.events: List[TraceEvent] = []

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def record_trace(self, request: Any, trace: Sequence[Any]) -> TraceEvent:
        """Append a TraceEvent for `request` (a TraceRequest) and its TraceEntry list."""
        final = trace[-1] if trace else None
        final_action = final.action if final is not None else ""
        ev = TraceEvent(
            ts=self._now(),
            source_address=request.source_address,
            destination=request.destination,
            destination_port=request.destination_port,
            protocol=request.protocol,
            ttl=request.ttl,
            entries=len(trace),
            outcome=classify_outcome(final_action),
            final_location=final.location if final is not None else "",
            final_action=final_action,
        )
        self.events.append(ev)
        if len(self.events) > self.max_events:
            self.events = self.events[-self.max_events :]
        return ev

    def clear(self) -> None:
        self.events.clear()

    def last(self, outcome: Optional[str] = None) -> Optional[TraceEvent]:
        for ev in reversed(self.events):
            if outcome is None or ev.outcome == outcome:
                return ev
        return None

    def outcome_counts(self) -> Dict[str, int]:
        return dict(Counter(ev.outcome for ev in self.events))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": SCHEMA,
            "eventCount": len(self.events),
            "outcomes": self.outcome_counts(),
            "events": [e.to_dict() for e in self.events],
        }

    def save_json(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
