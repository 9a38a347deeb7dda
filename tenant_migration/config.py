"""
Settings for a migration run.

Credentials and connection identifiers come from the environment (optionally
seeded from a ``.env`` file) and are validated once, up front, before any
remote call is made.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_NAMES: Dict[str, str] = {
    "source_domain": "SOURCE_DOMAIN",
    "source_client_id": "SOURCE_CLIENT_ID",
    "source_client_secret": "SOURCE_CLIENT_SECRET",
    "source_connection_id": "SOURCE_CONNECTION_ID",
    "dest_domain": "DESTINATION_DOMAIN",
    "dest_client_id": "DESTINATION_CLIENT_ID",
    "dest_client_secret": "DESTINATION_CLIENT_SECRET",
    "dest_connection_id": "DESTINATION_CONNECTION_ID",
}

SECRET_FIELDS = {"source_client_secret", "dest_client_secret"}


def normalize_domain(value: str) -> str:
    """Strip scheme, path separators and whitespace: ``https://x.auth0.com/`` -> ``x.auth0.com``."""
    domain = value.strip()
    for scheme in ("https://", "http://"):
        if domain.lower().startswith(scheme):
            domain = domain[len(scheme):]
    return domain.rstrip("/")


def load_env_file(path: Optional[Path] = None) -> bool:
    """
    Load ``path`` (default: ``.env`` in the working directory) into os.environ.

    Variables that are already set win. A missing file is not an error since
    the environment may already carry everything.
    """
    env_path = Path(path) if path is not None else Path(".env")
    if not env_path.is_file():
        logger.warning(
            "%s could not be loaded. Make sure environment variables are set properly.",
            env_path,
        )
        return False
    load_dotenv(env_path, override=False)
    logger.debug("Loaded environment from %s", env_path)
    return True


@dataclass(frozen=True)
class TenantSettings:
    domain: str
    client_id: str
    client_secret: str
    connection_id: str

    def __repr__(self) -> str:
        return (f"TenantSettings(domain={self.domain!r}, client_id={self.client_id!r}, "
                f"client_secret='****', connection_id={self.connection_id!r})")


@dataclass(frozen=True)
class MigrationConfig:
    source_domain: str
    source_client_id: str
    source_client_secret: str
    source_connection_id: str
    dest_domain: str
    dest_client_id: str
    dest_client_secret: str
    dest_connection_id: str

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MigrationConfig":
        """Build the config from environment variables, reporting every missing one at once."""
        env = os.environ if environ is None else environ
        values: Dict[str, str] = {}
        missing = []
        for field_name, env_name in ENV_NAMES.items():
            raw = (env.get(env_name) or "").strip()
            if not raw:
                missing.append(env_name)
                continue
            values[field_name] = raw

        if missing:
            raise ConfigError(
                "Missing required settings: " + ", ".join(missing)
                + ". Please check your environment or .env file."
            )

        for key in ("source_domain", "dest_domain"):
            values[key] = normalize_domain(values[key])
            if not values[key] or "/" in values[key]:
                raise ConfigError(f"Invalid {ENV_NAMES[key]}: {env.get(ENV_NAMES[key])!r}")

        return cls(**values)

    def source_tenant(self) -> TenantSettings:
        return TenantSettings(self.source_domain, self.source_client_id,
                              self.source_client_secret, self.source_connection_id)

    def destination_tenant(self) -> TenantSettings:
        return TenantSettings(self.dest_domain, self.dest_client_id,
                              self.dest_client_secret, self.dest_connection_id)

    def __repr__(self) -> str:
        parts = []
        for f in fields(self):
            value = "****" if f.name in SECRET_FIELDS else repr(getattr(self, f.name))
            parts.append(f"{f.name}={value}")
        return f"MigrationConfig({', '.join(parts)})"


__all__ = ["MigrationConfig", "TenantSettings", "load_env_file", "normalize_domain", "ENV_NAMES"]
