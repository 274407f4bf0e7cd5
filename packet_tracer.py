from __future__ import annotations

from typing import List, Optional
import argparse
import logging
import sys

from pktsim import ConfigError, PacketTracer, TraceCLIEngine, load_network_config
from pktsim.cli import CLOSE
from pktsim.config import default_config_dir
from pktsim.logging_config import init_logging
from session_log import SessionLogger

log = logging.getLogger("packet_tracer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulated packet path tracer")
    parser.add_argument("command", nargs="?", choices=("serve", "shell"), default="serve")
    parser.add_argument("--config-dir", default=None, help="Directory holding the three JSON tables")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--source", default=None, help="Initial source address for the shell")
    parser.add_argument("--log-level", default="info")
    parser.add_argument("--log-file", default=None)
    return parser


def run_shell(tracer: PacketTracer, source: Optional[str] = None) -> int:
    engine = TraceCLIEngine(tracer)
    ctx = engine.new_context()
    if source:
        engine.execute(ctx, f"source {source}")
    while True:
        try:
            line = input(ctx.prompt())
        except (EOFError, KeyboardInterrupt):
            print()
            return 0
        res = engine.execute(ctx, line)
        if res.output == CLOSE:
            return 0
        if res.output:
            print(res.output)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    init_logging({"level": args.log_level, "file": args.log_file})

    try:
        config = load_network_config(args.config_dir or default_config_dir())
    except ConfigError as e:
        log.error("%s", e)
        return 1

    if args.command == "shell":
        return run_shell(PacketTracer(config, session_log=SessionLogger()), args.source)

    from mcp_server.trace_mcp_server import serve

    serve(PacketTracer(config, session_log=SessionLogger()), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
