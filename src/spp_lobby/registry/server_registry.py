#!/usr/bin/env python3
"""
In-memory Game Server Registry

This module provides:
- ServerRegistry: dual-indexed registry with upsert-by-endpoint and lazy expiry
- LobbyHTTPHandler: HTTP request handler for registration and query endpoints
- start_lobby_server: launches a ThreadingHTTPServer in a daemon thread
- LobbyClient: thin HTTP client matching the API shape
"""

import json
import sys
import threading
import time
import urllib.parse
import urllib.request
import urllib.error
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, asdict

from .indexes import Endpoint, EndpointIndex, TimelineIndex


SERVER_EXPIRY_SECONDS = 5 * 60


class ServerNotFoundError(LookupError):
    """No live entry exists for the requested endpoint."""


@dataclass
class ServerEntry:
    """A live game server as announced to the lobby."""
    ip: str
    port: int
    players: List[Any] = None
    updated_at: int = None
    info: Dict[str, Any] = None

    def __post_init__(self):
        if self.players is None:
            self.players = []
        if self.updated_at is None:
            self.updated_at = int(time.time())
        if self.info is None:
            self.info = {}

    @property
    def endpoint(self) -> Endpoint:
        return (self.ip, self.port)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serialisable dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerEntry':
        """Create from dictionary."""
        data = dict(data)
        data['port'] = int(data['port'])
        data['updated_at'] = int(data['updated_at'])
        return cls(**data)


# ---------------------------------------------------------------------------
# Registry (endpoint index + timeline index)
# ---------------------------------------------------------------------------

class ServerRegistry:
    """Thread-safe registry of live game servers.

    Entries are indexed twice: by endpoint for point lookups and by
    ``updated_at`` for ordered listing and expiry. Every entry in the
    endpoint index sits in exactly one timeline bucket, keyed by its own
    ``updated_at``, and no bucket is ever left empty.

    Expiry is lazy: the read operations (``list_servers``, ``get_server``,
    ``get_players``) sweep before reading. Upsert and sweep hold the
    timeline lock for their whole duration and take the endpoint lock per
    point operation inside it.
    """

    def __init__(self, ttl_seconds: int = SERVER_EXPIRY_SECONDS,
                 clock: Callable[[], float] = time.time):
        self._ttl = ttl_seconds
        self._clock = clock
        self._endpoints = EndpointIndex()
        self._timeline = TimelineIndex()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def now(self) -> int:
        return int(self._clock())

    # -- writes -------------------------------------------------------------

    def upsert(self, entry: ServerEntry) -> bool:
        """Insert *entry* or replace the current entry for its endpoint.

        Returns True when the endpoint was not registered before.
        """
        with self._timeline.lock:
            existing = self._endpoints.get(entry.endpoint)
            if existing is not None:
                self._remove_from_timeline(existing)
            self._append_to_timeline(entry)
            self._endpoints.set(entry.endpoint, entry)

        if existing is None:
            print(f"[lobby] new server {entry.ip}:{entry.port}", file=sys.stderr)
        return existing is None

    def register(self, ip: str, port: int, players: Optional[List[Any]] = None,
                 info: Optional[Dict[str, Any]] = None,
                 now: Optional[int] = None) -> ServerEntry:
        """Stamp a new entry with the current time and upsert it."""
        entry = ServerEntry(
            ip=ip,
            port=port,
            players=players,
            updated_at=self.now() if now is None else now,
            info=info,
        )
        self.upsert(entry)
        return entry

    def _append_to_timeline(self, entry: ServerEntry) -> None:
        bucket = self._timeline.get(entry.updated_at)
        if bucket is None:
            self._timeline.set(entry.updated_at, [entry])
        else:
            bucket.append(entry)

    def _remove_from_timeline(self, entry: ServerEntry) -> None:
        bucket = self._timeline.get(entry.updated_at)
        if bucket is None:
            return
        for index, candidate in enumerate(bucket):
            if candidate.endpoint == entry.endpoint:
                # Bucket order carries no meaning: overwrite with last and shrink
                bucket[index] = bucket[-1]
                bucket.pop()
                break
        if not bucket:
            self._timeline.delete(entry.updated_at)

    def sweep(self, now: Optional[int] = None) -> int:
        """Evict every entry with ``now - updated_at > ttl``.

        Returns the number of evicted entries.
        """
        if now is None:
            now = self.now()
        expired: List[int] = []
        evicted = 0
        with self._timeline.lock:
            for timestamp, bucket in self._timeline.iterate_ascending():
                if now - timestamp > self._ttl:
                    for entry in bucket:
                        self._endpoints.delete(entry.endpoint)
                    evicted += len(bucket)
                    expired.append(timestamp)
            for timestamp in expired:
                self._timeline.delete(timestamp)

        if evicted:
            print(f"[lobby] evicted {evicted} expired server(s)", file=sys.stderr)
        return evicted

    # -- reads --------------------------------------------------------------

    def find_by_endpoint(self, ip: str, port: int) -> ServerEntry:
        entry = self._endpoints.get((ip, port))
        if entry is None:
            raise ServerNotFoundError("server not found")
        return entry

    def list_all(self) -> List[ServerEntry]:
        """All entries, oldest update first. Ties come out in bucket order."""
        entries: List[ServerEntry] = []
        with self._timeline.lock:
            for _, bucket in self._timeline.iterate_ascending():
                entries.extend(bucket)
        return entries

    def list_servers(self, now: Optional[int] = None) -> List[ServerEntry]:
        self.sweep(now)
        return self.list_all()

    def get_server(self, ip: str, port: int, now: Optional[int] = None) -> ServerEntry:
        self.sweep(now)
        return self.find_by_endpoint(ip, port)

    def get_players(self, ip: str, port: int, now: Optional[int] = None) -> List[Any]:
        self.sweep(now)
        return self.find_by_endpoint(ip, port).players

    def count(self) -> int:
        return len(self._endpoints)


# ---------------------------------------------------------------------------
# Request parsing
# ---------------------------------------------------------------------------

class InvalidInputError(ValueError):
    """Request data that cannot be turned into a registry call."""


def parse_port(raw: str) -> int:
    """Parse an unsigned 16-bit decimal port from a URL segment."""
    if not (raw.isascii() and raw.isdigit()):
        raise InvalidInputError("Invalid port")
    port = int(raw)
    if port > 65535:
        raise InvalidInputError("Invalid port")
    return port


def parse_registration(data: Any) -> tuple[int, List[Any], Dict[str, Any]]:
    """Validate a registration body. Returns ``(port, players, info)``."""
    if not isinstance(data, dict):
        raise InvalidInputError("Invalid input")
    port = data.get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise InvalidInputError("Invalid input")
    players = data.get("players", [])
    if not isinstance(players, list):
        raise InvalidInputError("Invalid input")
    info = {k: v for k, v in data.items() if k not in ("port", "players")}
    return port, players, info


# ---------------------------------------------------------------------------
# HTTP handler
# ---------------------------------------------------------------------------

def _make_handler(registry: ServerRegistry, trust_proxy_headers: bool = False):
    """Create a handler class bound to the given registry instance."""

    class LobbyHTTPHandler(BaseHTTPRequestHandler):

        def log_message(self, format, *args):
            # Silence default stderr logging
            pass

        def _json_response(self, data: Any, status: int = 200):
            body = json.dumps(data).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def _path_parts(self) -> List[str]:
            path = urllib.parse.urlparse(self.path).path.strip("/")
            return [urllib.parse.unquote(p) for p in path.split("/")]

        def _client_ip(self) -> str:
            if trust_proxy_headers:
                forwarded = self.headers.get("X-Forwarded-For", "")
                first_hop = forwarded.split(",")[0].strip()
                if first_hop:
                    return first_hop
            return self.client_address[0]

        def _read_json(self) -> Any:
            try:
                length = int(self.headers.get("Content-Length", 0))
                if length < 0:
                    raise ValueError(length)
                return json.loads(self.rfile.read(length) or b"null")
            except (ValueError, UnicodeDecodeError, RecursionError):
                raise InvalidInputError("Invalid input")

        def do_POST(self):
            if self._path_parts() != ["servers"]:
                self._json_response({"message": "not found"}, status=404)
                return
            try:
                port, players, info = parse_registration(self._read_json())
            except InvalidInputError as e:
                self._json_response({"message": str(e)}, status=400)
                return
            registry.register(self._client_ip(), port, players=players, info=info)
            self._json_response({}, status=201)

        def do_GET(self):
            parts = self._path_parts()

            if parts == ["servers"]:
                servers = registry.list_servers()
                self._json_response([s.to_dict() for s in servers])
                return

            if parts[0] != "servers" or len(parts) not in (3, 4) or \
                    (len(parts) == 4 and parts[3] != "players"):
                self._json_response({"message": "not found"}, status=404)
                return

            ip = parts[1]
            try:
                port = parse_port(parts[2])
            except InvalidInputError as e:
                self._json_response({"message": str(e)}, status=400)
                return

            try:
                if len(parts) == 4:
                    self._json_response(registry.get_players(ip, port))
                else:
                    self._json_response(registry.get_server(ip, port).to_dict())
            except ServerNotFoundError as e:
                self._json_response({"message": str(e)}, status=404)

    return LobbyHTTPHandler


def start_lobby_server(
    registry: ServerRegistry,
    host: str = "0.0.0.0",
    port: int = 8080,
    trust_proxy_headers: bool = False,
) -> ThreadingHTTPServer:
    """Start a ThreadingHTTPServer in a daemon thread and return the server."""
    handler = _make_handler(registry, trust_proxy_headers=trust_proxy_headers)
    server = ThreadingHTTPServer((host, port), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


# ---------------------------------------------------------------------------
# HTTP client (used by game servers and query tools)
# ---------------------------------------------------------------------------

class LobbyClient:
    """Thin HTTP client for the lobby API."""

    def __init__(self, host: str = "localhost", port: int = 8080):
        self._base = f"http://{host}:{port}"
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def _get(self, path: str) -> Any:
        url = f"{self._base}{path}"
        with self._opener.open(url, timeout=10) as resp:
            return json.loads(resp.read().decode())

    def _post(self, path: str, payload: Dict[str, Any]) -> int:
        request = urllib.request.Request(
            f"{self._base}{path}",
            data=json.dumps(payload).encode(),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        with self._opener.open(request, timeout=10) as resp:
            return resp.status

    @staticmethod
    def _server_path(ip: str, port: int) -> str:
        return f"/servers/{urllib.parse.quote(ip, safe='')}/{port}"

    def register(self, port: int, players: Optional[List[Any]] = None, **info: Any) -> bool:
        payload = dict(info)
        payload["port"] = port
        payload["players"] = players if players is not None else []
        try:
            return self._post("/servers", payload) == 201
        except (urllib.error.URLError, OSError):
            return False

    def list_servers(self) -> List[ServerEntry]:
        try:
            data = self._get("/servers")
            return [ServerEntry.from_dict(d) for d in data]
        except (urllib.error.URLError, OSError):
            return []

    def get_server(self, ip: str, port: int) -> Optional[ServerEntry]:
        try:
            return ServerEntry.from_dict(self._get(self._server_path(ip, port)))
        except (urllib.error.URLError, OSError):
            return None

    def get_players(self, ip: str, port: int) -> Optional[List[Any]]:
        try:
            return self._get(self._server_path(ip, port) + "/players")
        except (urllib.error.URLError, OSError):
            return None
