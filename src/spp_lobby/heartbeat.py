"""Game-server side announce loop: keeps an entry alive in the lobby."""

import sys
import time
from typing import Any, Callable, Optional

from .registry import LobbyClient


def announce_once(
    client: LobbyClient,
    port: int,
    players: Optional[list] = None,
    info: Optional[dict[str, Any]] = None,
) -> bool:
    """Register (or re-register) this game server once. Returns success."""
    return client.register(port, players=players or [], **(info or {}))


def run_announce_loop(
    client: LobbyClient,
    port: int,
    players_fn: Optional[Callable[[], list]] = None,
    info: Optional[dict[str, Any]] = None,
    interval: int = 60,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Re-register with the lobby every *interval* seconds, forever.

    *players_fn* is called each cycle for the current player list.  The
    interval must stay below the lobby TTL or the entry will flap.  Only
    changes in the outcome are reported on stderr.
    """
    last_ok: Optional[bool] = None

    while True:
        players = players_fn() if players_fn else []
        ok = announce_once(client, port, players=players, info=info)

        if ok != last_ok:
            before = "init" if last_ok is None else ("ok" if last_ok else "failed")
            after = "ok" if ok else "failed"
            print(f"[announce] port {port}: {before} -> {after}", file=sys.stderr)
            last_ok = ok

        sleep(interval)
