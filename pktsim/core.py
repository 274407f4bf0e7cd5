from __future__ import annotations

from typing import Any, Dict, List, Optional

from .cidr import is_ipv4_address
from .config import NetworkConfig, TraceRequest
from .firewall import Firewall
from .packet import Packet, Trace, TraceEntry
from .resolver import DNSResolver, RESOLVER_LOCATION
from .routing import RouteTable


DESTINATION_LOCATION = "Destination Host"


class PacketTracer:
    """Deterministic single-hop packet path simulator.

    Model: resolve the destination name (if any), then one forwarding hop
    (TTL check, longest-prefix route, TTL decrement, firewall) and delivery.
    Each decision adds one TraceEntry; the first terminal condition ends the trace.

    The config is read-only, so one tracer can serve any number of requests.
    `session_log` is anything with a `record_trace(request, trace)` method.
    """

    def __init__(self, config: NetworkConfig, session_log: Optional[Any] = None):
        self.config = config
        self.resolver = DNSResolver(config.dns_records)
        self.routes = RouteTable(config.routes)
        self.firewall = Firewall(config.firewall_rules, default_action=config.firewall_default)
        self.session_log = session_log

    # ───────────────────────────── Entry points ─────────────────────────────

    def trace(self, request: TraceRequest) -> List[TraceEntry]:
        trace: Trace = []
        packet = Packet(
            source_address=request.source_address,
            destination_port=request.destination_port,
            protocol=request.protocol,
            ttl=request.ttl,
        )

        if self._resolve_destination(request.destination, packet, trace):
            self._forward(packet, trace)

        if self.session_log is not None:
            self.session_log.record_trace(request, trace)
        return trace

    def trace_dict(self, data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Validate a raw request mapping and return serialized entries.

        Raises pydantic.ValidationError for a malformed request.
        """
        req = TraceRequest.model_validate(data)
        return self.to_dicts(self.trace(req))

    @staticmethod
    def to_dicts(trace: Trace) -> List[Dict[str, str]]:
        return [e.to_dict() for e in trace]

    # ───────────────────────────── Stages ─────────────────────────────

    def _resolve_destination(self, destination: str, packet: Packet, trace: Trace) -> bool:
        if is_ipv4_address(destination):
            packet.destination_address = destination
            trace.append(TraceEntry(RESOLVER_LOCATION, f"Destination is already an IP: {destination}"))
            return True

        resolved = self.resolver.resolve(destination, trace)
        if resolved is None:
            # NXDOMAIN / loop / unsupported already traced
            return False
        packet.destination_address = resolved
        return True

    def _forward(self, packet: Packet, trace: Trace) -> None:
        hop = 0
        dst = packet.destination_address

        if packet.ttl <= 0:
            trace.append(TraceEntry(f"Router-{hop}", "Time To Live (TTL) exceeded. Packet dropped."))
            return

        route = self.routes.lookup(dst)
        if route is None:
            trace.append(TraceEntry(f"Router-{hop}", f"No route to host {dst}. Destination unreachable."))
            return

        packet.ttl -= 1
        hop += 1
        trace.append(
            TraceEntry(
                route.router_name or f"Router-{hop}",
                f"Forwarded towards {dst} via next-hop {route.next_hop} on {route.interface}, TTL now {packet.ttl}",
            )
        )

        if not self.firewall.evaluate(packet, trace):
            return

        trace.append(
            TraceEntry(
                DESTINATION_LOCATION,
                f"Packet delivered to {dst}:{packet.destination_port} over {packet.protocol}",
            )
        )

    # ───────────────────────────── Show helpers ─────────────────────────────

    def show_dns(self) -> str:
        lines = ["Name                           Type   Value"]
        for r in self.resolver.records:
            lines.append(f"{r.name:<30} {r.kind:<6} {r.value}")
        return "\n".join(lines)

    def show_routes(self) -> str:
        return self.routes.show()

    def show_firewall(self) -> str:
        return self.firewall.show()


__all__ = ["PacketTracer", "DESTINATION_LOCATION"]
