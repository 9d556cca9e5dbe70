"""
Saved FHIR server profiles.

Profiles live in a small JSON file. When the file is missing or
unreadable the public defaults are used, so a fresh install can assemble
against HAPI straight away.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from pydantic import ValidationError

from fhirsdc.config.schemas import AuthType, ServerConfig, ServerType

logger = logging.getLogger(__name__)

DEFAULT_SERVERS: tuple[ServerConfig, ...] = (
    ServerConfig(
        id="hapi-r4",
        name="HAPI FHIR R4 (Public)",
        url="https://hapi.fhir.org/baseR4",
        type=ServerType.FHIR,
    ),
    ServerConfig(
        id="tx-fhir-org",
        name="HL7 Terminology Server (tx.fhir.org)",
        url="https://tx.fhir.org/r4",
        type=ServerType.TERMINOLOGY,
    ),
)


def default_servers() -> list[ServerConfig]:
    """Fresh copies of the default profiles."""
    return [server.model_copy(deep=True) for server in DEFAULT_SERVERS]


def create_server_config(
    name: str,
    url: str,
    *,
    type: ServerType | str = ServerType.FHIR,
    auth: AuthType | str = AuthType.NONE,
    token: str | None = None,
    headers: dict[str, str] | None = None,
) -> ServerConfig:
    """Build a new, inactive custom profile."""
    return ServerConfig(
        id=f"custom-{int(time.time() * 1000)}",
        name=name,
        url=url,
        type=ServerType(type),
        auth=AuthType(auth),
        token=token,
        headers=headers or {},
        active=False,
    )


def get_active_server(
    servers: list[ServerConfig],
    type: ServerType | str = ServerType.FHIR,
) -> ServerConfig | None:
    """The active profile of a type, else the first of that type."""
    wanted = ServerType(type)
    candidates = [s for s in servers if s.type is wanted]
    for server in candidates:
        if server.active:
            return server
    return candidates[0] if candidates else None


class ServerStore:
    """
    Loads and saves server profiles.

    Example:
        store = ServerStore(Path("~/.fhirsdc/servers.json").expanduser())
        servers = store.load()
        servers.append(create_server_config("Local", "http://localhost:8080/fhir"))
        store.save(servers)
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[ServerConfig]:
        """Saved profiles, or the defaults if none are saved."""
        if not self._path.exists():
            return default_servers()

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if isinstance(raw, list) and raw:
                return [ServerConfig.model_validate(entry) for entry in raw]
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"[config] Ignoring unreadable servers file {self._path}: {e}")

        return default_servers()

    def save(self, servers: list[ServerConfig]) -> None:
        """Write profiles to the servers file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps([server.to_storage() for server in servers], indent=2),
            encoding="utf-8",
        )
        logger.info(f"[config] Saved {len(servers)} server profile(s) to {self._path}")
