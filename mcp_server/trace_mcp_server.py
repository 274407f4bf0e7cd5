"""
HTTP + MCP server for the packet tracer.

Plain HTTP clients use:
  GET  /        banner
  POST /trace   JSON packet descriptor -> JSON list of {location, action}

MCP clients get the same operations as tools over the streamable HTTP
transport at /mcp.

Run (example):
  pip install -e .
  python packet_tracer.py serve --config-dir config

Then:
  curl -s localhost:4000/trace -H 'content-type: application/json' \\
    -d '{"sourceAddress":"192.168.1.50","destination":"10.0.0.10",
         "destinationPort":80,"protocol":"TCP","timeToLive":4}'
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple
import logging
import os

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from pktsim.config import REQUIRED_FIELDS_MESSAGE, TraceRequest, format_validation_errors, load_network_config
from pktsim.core import PacketTracer
from pktsim.packet import Trace
from session_log import SCHEMA as SESSION_SCHEMA, SessionLogger

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4000

BANNER = "Packet Tracer API is running. Use POST /trace with JSON body."


def handle_trace_request(tracer: PacketTracer, data: Any) -> Tuple[int, Any]:
    """Validate `data` and run a trace. Returns (http_status, json_body)."""
    try:
        req = TraceRequest.model_validate(data)
    except ValidationError as e:
        return 400, {"error": REQUIRED_FIELDS_MESSAGE, "details": format_validation_errors(e)}
    return 200, tracer.to_dicts(tracer.trace(req))


def build_server(
    tracer: PacketTracer,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> FastMCP:
    mcp = FastMCP(
        "Packet Tracer MCP Server",
        instructions="Tools for tracing a simulated packet through DNS, routing and firewall tables.",
        host=host,
        port=port,
        stateless_http=True,
        json_response=True,
    )

    @mcp.custom_route("/", methods=["GET"])
    async def index(request: Request) -> Response:
        return PlainTextResponse(BANNER)

    @mcp.custom_route("/trace", methods=["POST"])
    async def trace_route(request: Request) -> Response:
        try:
            data = await request.json()
        except ValueError:
            return JSONResponse({"error": "Request body must be valid JSON."}, status_code=400)
        status, body = handle_trace_request(tracer, data)
        return JSONResponse(body, status_code=status)

    @mcp.tool()
    def trace_packet(
        source_address: str,
        destination: str,
        destination_port: int,
        protocol: str = "TCP",
        ttl: int = 64,
    ) -> Dict[str, Any]:
        """Trace one packet; returns the ordered hop-by-hop decisions."""
        status, body = handle_trace_request(
            tracer,
            {
                "sourceAddress": source_address,
                "destination": destination,
                "destinationPort": destination_port,
                "protocol": protocol,
                "timeToLive": ttl,
            },
        )
        if status != 200:
            return {"ok": False, "problems": body["details"]}
        return {"ok": True, "trace": body}

    @mcp.tool()
    def resolve_name(name: str) -> Dict[str, Any]:
        """Resolve a hostname through the configured A/CNAME records."""
        trace: Trace = []
        address = tracer.resolver.resolve(name, trace)
        return {"address": address, "trace": tracer.to_dicts(trace)}

    @mcp.tool()
    def lookup_route(address: str) -> Dict[str, Any]:
        """Longest-prefix-match route for an IPv4 address."""
        try:
            route = tracer.routes.lookup(address)
        except ValueError:
            return {"ok": False, "problems": [f"Invalid IPv4 address: {address}"]}
        if route is None:
            return {"ok": True, "route": None}
        return {
            "ok": True,
            "route": {
                "cidr": route.cidr,
                "nextHop": route.next_hop,
                "interface": route.interface,
                "routerName": route.router_name,
            },
        }

    @mcp.tool()
    def get_session_log() -> Dict[str, Any]:
        """Recent trace requests recorded by this server."""
        if tracer.session_log is None:
            return {"schema": SESSION_SCHEMA, "eventCount": 0, "outcomes": {}, "events": []}
        return tracer.session_log.to_dict()

    return mcp


def serve(tracer: PacketTracer, host: str = DEFAULT_HOST, port: Optional[int] = None) -> None:
    port = port or int(os.getenv("PKTSIM_PORT", DEFAULT_PORT))
    mcp = build_server(tracer, host=host, port=port)
    log.info("Packet tracer API running on port %d", port)
    # Streamable HTTP transport is recommended in the MCP SDK docs.
    mcp.run(transport="streamable-http")


if __name__ == "__main__":
    from pktsim.logging_config import init_logging

    init_logging({"level": "info"})
    serve(PacketTracer(load_network_config(), session_log=SessionLogger()))
