"""CLI entry point for spp-lobby."""

import argparse
import json
import sys
import threading

from .config import LobbyConfig, load_config, merge_cli_args
from .heartbeat import run_announce_loop
from .registry import LobbyClient, ServerRegistry, start_lobby_server


def _build_config(args) -> LobbyConfig:
    """Build a LobbyConfig from a config file + CLI overrides."""
    if getattr(args, "config", None):
        config = load_config(args.config)
    else:
        config = LobbyConfig()
    merge_cli_args(config, args)
    return config


# ---------------------------------------------------------------------------
# spp-lobby serve
# ---------------------------------------------------------------------------

def cmd_serve(args) -> None:
    """Run the lobby HTTP API until interrupted."""
    config = _build_config(args)
    if config.ttl_seconds <= 0:
        print("Error: --ttl-seconds must be positive.", file=sys.stderr)
        sys.exit(1)

    registry = ServerRegistry(ttl_seconds=config.ttl_seconds)
    server = start_lobby_server(
        registry,
        host=config.host,
        port=config.port,
        trust_proxy_headers=config.trust_proxy_headers,
    )
    print(
        f"Lobby listening on {config.host}:{config.port}"
        f" (ttl={config.ttl_seconds}s)",
        file=sys.stderr,
    )

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        print("Shutting down.", file=sys.stderr)
    finally:
        server.shutdown()
        server.server_close()


# ---------------------------------------------------------------------------
# spp-lobby servers subcommand
# ---------------------------------------------------------------------------

def _format_server(s) -> str:
    players = ", ".join(str(p) for p in s.players) or "-"
    return f"{s.ip}:{s.port}  players={len(s.players)} [{players}]  updated_at={s.updated_at}"


def _format_servers(servers, fmt: str) -> str:
    """Format a list of ServerEntry objects for output."""
    if fmt == "json":
        return json.dumps([s.to_dict() for s in servers], indent=2)
    lines = [_format_server(s) for s in servers]
    return "\n".join(lines) if lines else "(no servers)"


def _client(args) -> LobbyClient:
    return LobbyClient(host=args.lobby_host, port=args.lobby_port)


def cmd_servers_list(args) -> None:
    print(_format_servers(_client(args).list_servers(), args.format))


def cmd_servers_get(args) -> None:
    server = _client(args).get_server(args.ip, args.port)
    if server is None:
        print(f"Server {args.ip}:{args.port} not found.", file=sys.stderr)
        sys.exit(1)
    if args.format == "json":
        print(json.dumps(server.to_dict(), indent=2))
    else:
        print(_format_server(server))


def cmd_servers_players(args) -> None:
    players = _client(args).get_players(args.ip, args.port)
    if players is None:
        print(f"Server {args.ip}:{args.port} not found.", file=sys.stderr)
        sys.exit(1)
    if args.format == "json":
        print(json.dumps(players, indent=2))
    else:
        print("\n".join(str(p) for p in players) if players else "(no players)")


def _add_lobby_args(parser: argparse.ArgumentParser) -> None:
    """Add --lobby-host and --lobby-port to a client sub-parser."""
    parser.add_argument(
        "--lobby-host", type=str, default="localhost",
        help="Hostname of the lobby server (default: localhost)",
    )
    parser.add_argument(
        "--lobby-port", type=int, default=8080,
        help="Port of the lobby HTTP API (default: 8080)",
    )


# ---------------------------------------------------------------------------
# spp-lobby announce
# ---------------------------------------------------------------------------

def cmd_announce(args) -> None:
    """Keep a game server registered with the lobby until interrupted."""
    config = _build_config(args)
    if config.announce_interval <= 0:
        print("Error: --interval must be positive.", file=sys.stderr)
        sys.exit(1)
    if config.announce_interval >= config.ttl_seconds:
        print(
            f"Error: --interval ({config.announce_interval}s) must be below the"
            f" lobby TTL ({config.ttl_seconds}s).",
            file=sys.stderr,
        )
        sys.exit(1)

    info = {"name": args.name} if args.name else {}
    players = list(args.player or [])
    print(
        f"Announcing port {args.game_port} to {args.lobby_host}:{args.lobby_port}"
        f" every {config.announce_interval}s",
        file=sys.stderr,
    )
    try:
        run_announce_loop(
            _client(args),
            args.game_port,
            players_fn=lambda: players,
            info=info,
            interval=config.announce_interval,
        )
    except KeyboardInterrupt:
        pass


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="spp-lobby",
        description="spp-lobby: ephemeral game server lobby",
    )
    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the lobby HTTP API")
    serve_parser.add_argument("--config", type=str, help="Path to YAML config file")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: 8080)")
    serve_parser.add_argument(
        "--ttl-seconds", type=int, dest="ttl_seconds",
        help="Seconds before an unrenewed server is evicted (default: 300)",
    )
    serve_parser.add_argument(
        "--trust-proxy-headers", action="store_true", dest="trust_proxy_headers",
        default=None,
        help="Use X-Forwarded-For as the registering IP",
    )
    serve_parser.set_defaults(func=cmd_serve)

    # servers
    servers_parser = subparsers.add_parser("servers", help="Query a running lobby")
    servers_sub = servers_parser.add_subparsers(dest="servers_command")

    # servers list
    srv_list = servers_sub.add_parser("list", help="List live servers, oldest update first")
    _add_lobby_args(srv_list)
    srv_list.add_argument(
        "--format", choices=["text", "json"], default="text",
        help="Output format (default: text)",
    )
    srv_list.set_defaults(func=cmd_servers_list)

    # servers get / players
    for name, func, help_text in (
        ("get", cmd_servers_get, "Show a single server"),
        ("players", cmd_servers_players, "Show the players of a server"),
    ):
        sub = servers_sub.add_parser(name, help=help_text)
        _add_lobby_args(sub)
        sub.add_argument("ip", type=str, help="Server IP address")
        sub.add_argument("port", type=int, help="Server port")
        sub.add_argument(
            "--format", choices=["text", "json"], default="text",
            help="Output format (default: text)",
        )
        sub.set_defaults(func=func)

    # announce
    announce_parser = subparsers.add_parser(
        "announce", help="Keep a game server registered with the lobby",
    )
    _add_lobby_args(announce_parser)
    announce_parser.add_argument("--config", type=str, help="Path to YAML config file")
    announce_parser.add_argument(
        "--game-port", type=int, dest="game_port", required=True,
        help="Port the game server accepts players on",
    )
    announce_parser.add_argument(
        "--player", action="append",
        help="Player name to report (repeatable)",
    )
    announce_parser.add_argument("--name", type=str, help="Server display name")
    announce_parser.add_argument(
        "--interval", type=int, dest="announce_interval",
        help="Seconds between registrations (default: 60)",
    )
    announce_parser.add_argument(
        "--ttl-seconds", type=int, dest="ttl_seconds",
        help="TTL the lobby evicts servers after; the interval must be below it (default: 300)",
    )
    announce_parser.set_defaults(func=cmd_announce)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "servers" and not args.servers_command:
        servers_parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
