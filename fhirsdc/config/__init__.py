"""
fhirsdc Configuration

Application settings and saved FHIR server profiles.
"""

from .schemas import AppSettings, AuthType, ServerConfig, ServerType
from .servers import (
    DEFAULT_SERVERS,
    ServerStore,
    create_server_config,
    default_servers,
    get_active_server,
)

__all__ = [
    "AppSettings",
    "AuthType",
    "DEFAULT_SERVERS",
    "ServerConfig",
    "ServerStore",
    "ServerType",
    "create_server_config",
    "default_servers",
    "get_active_server",
]
