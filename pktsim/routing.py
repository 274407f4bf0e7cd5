from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from .cidr import address_in_network, cidr_prefix_length


@dataclass(frozen=True)
class Route:
    cidr: str
    next_hop: str
    interface: str
    router_name: Optional[str] = None

    @property
    def prefix_length(self) -> int:
        return cidr_prefix_length(self.cidr)

    def matches(self, destination: str) -> bool:
        return address_in_network(destination, self.cidr)


def select_route(routes: Iterable[Route], destination: str) -> Optional[Route]:
    """Longest prefix match. Strict '>' keeps the first declared route on ties."""
    best: Optional[Route] = None
    best_prefix = -1
    for route in routes:
        prefix = route.prefix_length
        if prefix > best_prefix and route.matches(destination):
            best = route
            best_prefix = prefix
    return best


class RouteTable:
    def __init__(self, routes: Iterable[Route]):
        self.routes: List[Route] = list(routes)

    def lookup(self, destination: str) -> Optional[Route]:
        return select_route(self.routes, destination)

    def show(self) -> str:
        lines = ["Network            Next-hop         Interface  Router"]
        for r in self.routes:
            lines.append(f"{r.cidr:<18} {r.next_hop:<16} {r.interface:<10} {r.router_name or '-'}")
        return "\n".join(lines)


__all__ = ["Route", "RouteTable", "select_route"]
