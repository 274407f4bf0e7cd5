from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .cidr import address_in_network
from .packet import Packet, Trace, TraceEntry


FIREWALL_LOCATION = "Firewall"

PROTOCOL_ANY = "ANY"


@dataclass(frozen=True)
class FirewallRule:
    id: str
    action: str  # allow|deny
    protocol: str  # upper-case token or ANY
    source: str  # CIDR
    port_range: Tuple[int, int]  # inclusive

    def matches(self, packet: Packet) -> bool:
        if self.protocol not in (PROTOCOL_ANY, packet.protocol_token):
            return False
        if not address_in_network(packet.source_address, self.source):
            return False
        lo, hi = self.port_range
        return lo <= packet.destination_port <= hi

    def describe(self) -> str:
        lo, hi = self.port_range
        return f"#{self.id} {self.action} protocol={self.protocol} source={self.source} port={lo}-{hi}"


class Firewall:
    """Ordered allow/deny rules; the first matching rule decides.

    With no match the configured default applies (allow unless told otherwise).
    """

    def __init__(self, rules: Iterable[FirewallRule], default_action: str = "allow"):
        self.rules: List[FirewallRule] = list(rules)
        self.default_action = (default_action or "allow").lower()

    def first_match(self, packet: Packet) -> Optional[FirewallRule]:
        for rule in self.rules:
            if rule.matches(packet):
                return rule
        return None

    def evaluate(self, packet: Packet, trace: Trace) -> bool:
        rule = self.first_match(packet)
        if rule is not None:
            if rule.action == "deny":
                lo, hi = rule.port_range
                trace.append(
                    TraceEntry(
                        FIREWALL_LOCATION,
                        f"Packet blocked by rule #{rule.id} (protocol={rule.protocol}, port={lo}-{hi})",
                    )
                )
                return False
            trace.append(TraceEntry(FIREWALL_LOCATION, f"Packet allowed by rule #{rule.id}"))
            return True

        if self.default_action == "deny":
            trace.append(TraceEntry(FIREWALL_LOCATION, "No matching rule, default deny"))
            return False
        trace.append(TraceEntry(FIREWALL_LOCATION, "No matching rule, default allow"))
        return True

    def show(self) -> str:
        lines = [f"Firewall rules (default {self.default_action}):"]
        for rule in self.rules:
            lines.append(f"  {rule.describe()}")
        return "\n".join(lines)


__all__ = ["FirewallRule", "Firewall", "FIREWALL_LOCATION", "PROTOCOL_ANY"]
