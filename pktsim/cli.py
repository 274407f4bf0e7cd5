from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional
import json
import shlex

from pydantic import ValidationError

from .cidr import is_ipv4_address
from .config import TraceRequest, format_validation_errors
from .core import PacketTracer
from .packet import Trace


CLOSE = "__CLOSE__"

DEFAULT_TTL = 64
DEFAULT_PROTOCOL = "TCP"


@dataclass
class TraceResult:
    output: str = ""
    prompt: str = ""


@dataclass
class TraceContext:
    tracer: PacketTracer
    source_address: Optional[str] = None
    ttl: int = DEFAULT_TTL

    def prompt(self) -> str:
        return f"{self.source_address or 'tracer'}> "


class TraceCLIEngine:
    """Small console for running packet traces by hand.

    Purpose: set the source address and TTL once, then trace, resolve and
    inspect the loaded tables. Errors are reported as '% ...' lines.
    """

    def __init__(self, tracer: PacketTracer):
        self.tracer = tracer

    def new_context(self, source_address: Optional[str] = None) -> TraceContext:
        return TraceContext(tracer=self.tracer, source_address=source_address)

    def execute(self, ctx: TraceContext, line: str) -> TraceResult:
        raw = (line or "").rstrip("\n")
        stripped = raw.strip()
        if stripped == "":
            return TraceResult(output="", prompt=ctx.prompt())

        if stripped in ("?", "help") or stripped.endswith(" ?"):
            return TraceResult(output=self._help(), prompt=ctx.prompt())

        try:
            argv = shlex.split(stripped)
        except ValueError:
            argv = stripped.split()

        cmd = (argv[0] if argv else "").lower()

        if cmd in ("exit", "quit"):
            return TraceResult(output=CLOSE, prompt=ctx.prompt())

        if cmd in ("source", "src"):
            if len(argv) != 2:
                return TraceResult(output="% Usage: source <ip>", prompt=ctx.prompt())
            if not is_ipv4_address(argv[1]):
                return TraceResult(output="% Invalid IP address.", prompt=ctx.prompt())
            ctx.source_address = argv[1]
            return TraceResult(output="", prompt=ctx.prompt())

        if cmd == "ttl":
            if len(argv) != 2 or not argv[1].isdigit():
                return TraceResult(output="% Usage: ttl <n>", prompt=ctx.prompt())
            ctx.ttl = int(argv[1])
            return TraceResult(output="", prompt=ctx.prompt())

        if cmd in ("trace", "tracert", "traceroute"):
            return TraceResult(output=self._trace(ctx, argv[1:]), prompt=ctx.prompt())

        if cmd in ("resolve", "nslookup"):
            if len(argv) != 2:
                return TraceResult(output="% Usage: resolve <name>", prompt=ctx.prompt())
            trace: Trace = []
            addr = self.tracer.resolver.resolve(argv[1], trace)
            lines = self._format(trace)
            if addr is not None:
                lines.append(f"Address: {addr}")
            return TraceResult(output="\n".join(lines), prompt=ctx.prompt())

        if cmd == "route":
            if len(argv) != 2:
                return TraceResult(output="% Usage: route <ip>", prompt=ctx.prompt())
            if not is_ipv4_address(argv[1]):
                return TraceResult(output="% Invalid IP address.", prompt=ctx.prompt())
            route = self.tracer.routes.lookup(argv[1])
            if route is None:
                return TraceResult(output=f"% No route to host {argv[1]}", prompt=ctx.prompt())
            out = f"{route.cidr} via {route.next_hop} on {route.interface} ({route.router_name or 'unlabeled'})"
            return TraceResult(output=out, prompt=ctx.prompt())

        if cmd == "show":
            return TraceResult(output=self._show(argv[1:]), prompt=ctx.prompt())

        if cmd == "save":
            if len(argv) != 2:
                return TraceResult(output="% Usage: save <path>", prompt=ctx.prompt())
            if self.tracer.session_log is None:
                return TraceResult(output="% Session log is disabled.", prompt=ctx.prompt())
            try:
                self.tracer.session_log.save_json(argv[1])
            except OSError as e:
                return TraceResult(output=f"% Could not save: {e}", prompt=ctx.prompt())
            return TraceResult(output=f"Saved session log to {argv[1]}", prompt=ctx.prompt())

        return TraceResult(output="% Unknown command.", prompt=ctx.prompt())

    def _trace(self, ctx: TraceContext, args: List[str]) -> str:
        if len(args) < 2:
            return "% Usage: trace <destination> <port> [protocol]"
        if ctx.source_address is None:
            return "% Set a source address first: source <ip>"
        if not args[1].isdigit():
            return "% Invalid port."
        try:
            req = TraceRequest(
                source_address=ctx.source_address,
                destination=args[0],
                destination_port=int(args[1]),
                protocol=args[2] if len(args) >= 3 else DEFAULT_PROTOCOL,
                ttl=ctx.ttl,
            )
        except ValidationError as e:
            return "\n".join(f"% {p}" for p in format_validation_errors(e))
        return "\n".join(self._format(self.tracer.trace(req)))

    def _show(self, args: List[str]) -> str:
        what = (args[0] if args else "").lower()
        if what == "dns":
            return self.tracer.show_dns()
        if what in ("routes", "route"):
            return self.tracer.show_routes()
        if what in ("firewall", "rules"):
            return self.tracer.show_firewall()
        if what == "session":
            if self.tracer.session_log is None:
                return "% Session log is disabled."
            return json.dumps(self.tracer.session_log.to_dict(), indent=2, ensure_ascii=False)
        return "% Usage: show dns|routes|firewall|session"

    def _format(self, trace: Trace) -> List[str]:
        return [f"{i:<2} {e.location:<16} {e.action}" for i, e in enumerate(trace, start=1)]

    def _help(self) -> str:
        return "\n".join(
            [
                "source <ip>",
                "ttl <n>",
                "trace <destination> <port> [protocol]",
                "resolve <name>",
                "route <ip>",
                "show dns|routes|firewall|session",
                "save <path>",
                "exit",
            ]
        )


__all__ = ["TraceCLIEngine", "TraceContext", "TraceResult", "CLOSE"]
