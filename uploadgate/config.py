"""uploadgate configuration: a versioned YAML file plus environment overrides.

The first existing file among these is loaded:
  1. the ``config_path`` argument
  2. $UPLOADGATE_CONFIG
  3. ./.uploadgate/config.yaml
  4. ~/.uploadgate/config.yaml

With no file at all the defaults apply. A file that exists but cannot be
used (bad YAML, no ``version``, unknown version, a section that is not a
mapping, unknown backend name, a size or lifetime below 1) stops the
process with exit code 1 and a message on stderr.

Environment variables are applied last and always win:
  PORT, UPLOADGATE_PORT          server.port (UPLOADGATE_PORT is read second)
  BUCKET_NAME                    storage.bucket
  MINIO_ENDPOINT                 storage.endpoint
  MINIO_ACCESS_KEY/SECRET_KEY    storage credentials; never read from YAML
  UPLOADGATE_STORAGE_BACKEND     storage.backend
  UPLOADGATE_KEYS_DB_PATH        registry.path
  UPLOADGATE_AUDIT_DB_PATH       audit.path
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Any, NoReturn, Optional, TypeVar

import yaml

from uploadgate.constants import (
    DEFAULT_UPLOAD_RATE_LIMIT,
    DOWNLOAD_URL_TTL,
    MAX_DOWNLOAD_URL_TTL,
    MAX_UPLOAD_BODY_BYTES,
    UPLOAD_SOURCE_TAG,
)
from uploadgate.utils.logger import get_logger

logger = get_logger(__name__)

_S = TypeVar("_S")

SUPPORTED_CONFIG_VERSION = 1
SUPPORTED_VERSIONS: frozenset[int] = frozenset({SUPPORTED_CONFIG_VERSION})

VALID_STORAGE_BACKENDS: frozenset[str] = frozenset({"minio", "memory"})
VALID_REGISTRY_BACKENDS: frozenset[str] = frozenset({"sqlite", "supabase"})

DEFAULT_CONFIG_PATHS = [
    ".uploadgate/config.yaml",
    os.path.expanduser("~/.uploadgate/config.yaml"),
]

# Fields that only the environment may set.
_ENV_ONLY_FIELDS = frozenset({"access_key", "secret_key"})


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class StorageConfig:
    backend: str = "minio"
    bucket: str = "uploads"
    endpoint: str = "localhost:9000"
    secure: bool = True
    region: Optional[str] = None
    create_bucket: bool = False
    download_url_ttl_days: int = DOWNLOAD_URL_TTL.days
    public_base_url: str = "http://localhost:8080/objects"
    """Base of the links issued by the in-memory store."""
    access_key: Optional[str] = field(default=None, repr=False)
    secret_key: Optional[str] = field(default=None, repr=False)

    @property
    def download_url_ttl(self) -> timedelta:
        """Configured lifetime, never longer than MAX_DOWNLOAD_URL_TTL."""
        return min(timedelta(days=self.download_url_ttl_days), MAX_DOWNLOAD_URL_TTL)


@dataclass
class RegistryConfig:
    backend: str = "sqlite"
    path: str = "~/.uploadgate/keys.db"


@dataclass
class AuditConfig:
    enabled: bool = True
    path: str = "~/.uploadgate/audit.db"
    retention_days: int = 90


@dataclass
class UploadConfig:
    max_body_bytes: int = MAX_UPLOAD_BODY_BYTES
    rate_limit: str = DEFAULT_UPLOAD_RATE_LIMIT
    source_tag: str = UPLOAD_SOURCE_TAG


@dataclass
class Config:
    """Everything the lifespan needs to build the gateway. Defaults run locally."""

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    path: Optional[str] = None
    """File the values came from, or None when running on defaults."""

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Overlay a parsed YAML mapping on the defaults. Unknown keys are ignored.

        Raises:
            SystemExit(1): A section is not a mapping, a backend name is not
                recognised, or a size, lifetime or port is not a positive integer.
        """
        config = cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=_section(ServerConfig, raw, "server"),
            storage=_section(StorageConfig, raw, "storage"),
            registry=_section(RegistryConfig, raw, "registry"),
            audit=_section(AuditConfig, raw, "audit"),
            upload=_section(UploadConfig, raw, "upload"),
            path=path,
        )
        _require_choice("storage.backend", config.storage.backend, VALID_STORAGE_BACKENDS)
        _require_choice("registry.backend", config.registry.backend, VALID_REGISTRY_BACKENDS)
        _require_positive("server.port", config.server.port)
        _require_positive("storage.download_url_ttl_days", config.storage.download_url_ttl_days)
        _require_positive("upload.max_body_bytes", config.upload.max_body_bytes)
        _require_positive("audit.retention_days", config.audit.retention_days)
        return config


def _section(section_cls: type[_S], raw: dict, name: str) -> _S:
    values = raw.get(name) or {}
    if not isinstance(values, dict):
        _fail(f"'{name}' must be a mapping (got {values!r})")
    known = {f.name for f in fields(section_cls)} - _ENV_ONLY_FIELDS  # type: ignore[arg-type]
    return section_cls(**{key: value for key, value in values.items() if key in known})


def _fail(message: str) -> NoReturn:
    print(f"uploadgate: config error: {message}", file=sys.stderr)
    raise SystemExit(1)


def _require_choice(name: str, value: str, allowed: frozenset[str]) -> None:
    if value not in allowed:
        _fail(f"{name} must be one of {', '.join(sorted(allowed))} (got {value!r})")


def _require_positive(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        _fail(f"{name} must be a positive integer (got {value!r})")


def _find_config_file(config_path: Optional[str]) -> tuple[Optional[str], list[str]]:
    candidates = [p for p in (config_path, os.environ.get("UPLOADGATE_CONFIG")) if p]
    candidates.extend(DEFAULT_CONFIG_PATHS)
    for candidate in candidates:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            return expanded, candidates
    return None, candidates


def _read_yaml(path: str) -> dict[str, Any]:
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(f"{path} is not valid YAML: {exc}")
    except OSError as exc:
        _fail(f"cannot read {path}: {exc}")

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        _fail(f"{path} must contain a mapping at the top level")
    if "version" not in raw:
        _fail(f"{path} has no 'version' key; start the file with 'version: {SUPPORTED_CONFIG_VERSION}'")
    if raw["version"] not in SUPPORTED_VERSIONS:
        _fail(
            f"{path} declares version {raw['version']!r}; "
            f"this build reads version {SUPPORTED_CONFIG_VERSION}"
        )
    return raw


def load_config(config_path: Optional[str] = None) -> Config:
    """Resolve the effective Config.

    Raises:
        SystemExit(1): The file found is unusable, or an environment override
            (port, storage backend) has an invalid value.
    """
    found, searched = _find_config_file(config_path)
    if found is None:
        logger.info("config_defaults_used", searched=searched)
        config = Config.defaults()
    else:
        config = Config.from_dict(_read_yaml(found), path=found)

    _apply_env_overrides(config)

    if config.storage.download_url_ttl_days > MAX_DOWNLOAD_URL_TTL.days:
        logger.warning(
            "download_url_ttl_capped",
            configured_days=config.storage.download_url_ttl_days,
            max_days=MAX_DOWNLOAD_URL_TTL.days,
        )

    logger.info(
        "config_resolved",
        path=config.path,
        storage_backend=config.storage.backend,
        registry_backend=config.registry.backend,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    for name in ("PORT", "UPLOADGATE_PORT"):
        value = os.environ.get(name)
        if value is None:
            continue
        try:
            config.server.port = int(value)
        except ValueError:
            _fail(f"{name}={value!r} is not a port number")
        _require_positive(name, config.server.port)

    storage = config.storage
    storage.bucket = os.environ.get("BUCKET_NAME") or storage.bucket
    storage.endpoint = os.environ.get("MINIO_ENDPOINT") or storage.endpoint
    storage.access_key = os.environ.get("MINIO_ACCESS_KEY")
    storage.secret_key = os.environ.get("MINIO_SECRET_KEY")

    backend = os.environ.get("UPLOADGATE_STORAGE_BACKEND")
    if backend:
        _require_choice("UPLOADGATE_STORAGE_BACKEND", backend, VALID_STORAGE_BACKENDS)
        storage.backend = backend

    config.registry.path = os.environ.get("UPLOADGATE_KEYS_DB_PATH") or config.registry.path
    config.audit.path = os.environ.get("UPLOADGATE_AUDIT_DB_PATH") or config.audit.path
