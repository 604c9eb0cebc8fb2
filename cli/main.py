"""toolbridge CLI: serve the built-in tools over stdio JSON-RPC."""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

from toolbridge import __version__, config
from toolbridge.engine import BridgeServer, build_server, serve_stdio
from toolbridge.engine.bridge import canonicalize_tool_name
from toolbridge.tools import default_operations
from toolbridge.utils.logging_utils import debug, warn


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolbridge",
        description="Expose shell and file tools to a client over stdio JSON-RPC.",
    )
    parser.add_argument(
        "--tools",
        default=None,
        help="Comma-separated allow-list of tools (aliases like Shell or ReadFile accepted). "
        "Defaults to ENABLED_TOOLS, or every tool when that is empty.",
    )
    parser.add_argument("--env-file", type=Path, default=None, help="Load extra settings from this .env file.")
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Print debug diagnostics to stderr.",
    )
    parser.add_argument(
        "--pty",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run shell commands under a pseudo-terminal instead of pipes.",
    )
    parser.add_argument("--list-tools", action="store_true", help="Print the tool listing as JSON and exit.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _apply_overrides(args: argparse.Namespace) -> None:
    if args.env_file is not None:
        if not args.env_file.is_file():
            raise FileNotFoundError(f"env file not found: {args.env_file}")
        config.refresh_runtime_config(env_file=args.env_file)
    if args.debug is not None:
        config.DEBUG = bool(args.debug)
    if args.pty is not None:
        config.SHELL_USE_PTY = bool(args.pty)


def _enabled_tools(raw: str | None) -> tuple[str, ...]:
    if raw is None:
        return config.ENABLED_TOOLS
    return tuple(s.strip() for s in raw.split(",") if s.strip())


def _warn_unknown_tools(enabled: tuple[str, ...], known: set[str]) -> None:
    for name in enabled:
        if canonicalize_tool_name(name) not in known:
            warn(f"unknown tool in allow-list: {name}")


async def _serve(server: BridgeServer) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, server.shutdown)
        except NotImplementedError:
            debug(f"signal handler for {sig!r} not supported on this platform")
    await serve_stdio(server)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        _apply_overrides(args)
        operations = default_operations()
        enabled = _enabled_tools(args.tools)
        _warn_unknown_tools(enabled, {op.name for op in operations})
        server = build_server(operations, enabled=enabled)
    except Exception as exc:
        print(f"Server error: {exc}", file=sys.stderr)
        return 1

    if args.list_tools:
        print(json.dumps({"tools": server.list_tools()}, indent=2, ensure_ascii=False))
        return 0

    debug(f"serving {', '.join(sorted(server.registry)) or '(no tools)'}")
    try:
        asyncio.run(_serve(server))
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(f"Server error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
