"""
In-process Game Server Registry

This package provides:
1. ServerRegistry — endpoint + timeline indexed registry with lazy expiry
2. LobbyClient — HTTP client for registering with and querying the lobby
3. start_lobby_server — launches the HTTP API in a daemon thread
"""

from .indexes import EndpointIndex, TimelineIndex
from .server_registry import (
    SERVER_EXPIRY_SECONDS,
    InvalidInputError,
    LobbyClient,
    ServerEntry,
    ServerNotFoundError,
    ServerRegistry,
    start_lobby_server,
)

__version__ = '0.1.0'
__all__ = [
    'SERVER_EXPIRY_SECONDS',
    'EndpointIndex',
    'InvalidInputError',
    'LobbyClient',
    'ServerEntry',
    'ServerNotFoundError',
    'ServerRegistry',
    'TimelineIndex',
    'start_lobby_server',
]
