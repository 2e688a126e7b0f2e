"""
Configuration management for the Varadhi control plane.

All server configuration is done via environment variables. Role
definitions are the one exception: they live in a YAML file whose path is
configured here (see auth.options).

Invariants:
    - All settings have sensible defaults for local development
    - The deployed region MUST be set explicitly outside development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class MetaStoreBackend(Enum):
    """Supported node tree backends for the metadata store."""

    MEMORY = "memory"
    SQLITE = "sqlite"
    ZOOKEEPER = "zookeeper"


@dataclass(frozen=True)
class ZookeeperConfig:
    """ZooKeeper backend configuration.

    Attributes:
        hosts: Comma-separated host:port list
        session_timeout_s: Session timeout in seconds
        connect_timeout_s: Time to wait for the initial connection
        auth_scheme: Optional auth scheme (e.g. "digest")
        auth_credential: Credential for auth_scheme
    """

    hosts: str = "127.0.0.1:2181"
    session_timeout_s: float = 10.0
    connect_timeout_s: float = 15.0
    auth_scheme: str | None = None
    auth_credential: str | None = None

    @classmethod
    def from_env(cls) -> ZookeeperConfig:
        """Load configuration from environment variables."""
        return cls(
            hosts=os.getenv("ZK_HOSTS", "127.0.0.1:2181"),
            session_timeout_s=float(os.getenv("ZK_SESSION_TIMEOUT_S", "10")),
            connect_timeout_s=float(os.getenv("ZK_CONNECT_TIMEOUT_S", "15")),
            auth_scheme=os.getenv("ZK_AUTH_SCHEME"),
            auth_credential=os.getenv("ZK_AUTH_CREDENTIAL"),
        )


@dataclass(frozen=True)
class SqliteConfig:
    """SQLite backend configuration.

    Attributes:
        db_path: Path of the metadata database file
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
    """

    db_path: str = "/var/lib/varadhi/metastore.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000

    @classmethod
    def from_env(cls) -> SqliteConfig:
        """Load configuration from environment variables."""
        return cls(
            db_path=os.getenv("SQLITE_DB_PATH", "/var/lib/varadhi/metastore.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        )


@dataclass(frozen=True)
class MetaStoreConfig:
    """Metadata store configuration.

    Attributes:
        backend: Which node tree backend to use
        root_path: Root node under which all entities are stored
    """

    backend: MetaStoreBackend = MetaStoreBackend.ZOOKEEPER
    root_path: str = "/varadhi"

    @classmethod
    def from_env(cls) -> MetaStoreConfig:
        """Load configuration from environment variables.

        Raises:
            ValueError: If METASTORE_BACKEND is not a known backend
        """
        backend_str = os.getenv("METASTORE_BACKEND", "zookeeper").lower()
        try:
            backend = MetaStoreBackend(backend_str)
        except ValueError:
            valid = ", ".join(b.value for b in MetaStoreBackend)
            raise ValueError(f"Invalid METASTORE_BACKEND '{backend_str}'. Must be one of: {valid}")
        return cls(
            backend=backend,
            root_path=os.getenv("METASTORE_ROOT", "/varadhi"),
        )


@dataclass(frozen=True)
class RestConfig:
    """Admin API behaviour.

    Attributes:
        deployed_region: Region this control plane deploys topics into
        default_org: Org used when a request does not name one
        default_team: Team used when a request does not name one
        default_project: Project used when a request does not name one
        bootstrap_defaults: Create the default org, team and project at startup
    """

    deployed_region: str = ""
    default_org: str = "default"
    default_team: str = "public"
    default_project: str = "public"
    bootstrap_defaults: bool = True

    @classmethod
    def from_env(cls) -> RestConfig:
        """Load configuration from environment variables."""
        return cls(
            deployed_region=os.getenv("DEPLOYED_REGION", ""),
            default_org=os.getenv("DEFAULT_ORG", "default"),
            default_team=os.getenv("DEFAULT_TEAM", "public"),
            default_project=os.getenv("DEFAULT_PROJECT", "public"),
            bootstrap_defaults=os.getenv("BOOTSTRAP_DEFAULTS", "true").lower() == "true",
        )


@dataclass(frozen=True)
class AuthorizationConfig:
    """Authorization configuration.

    Attributes:
        enabled: Whether admin requests are authorized
        config_file: YAML file with roleDefinitions (and optional roleBindings)
        super_users: Subjects that bypass authorization
    """

    enabled: bool = False
    config_file: str | None = None
    super_users: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> AuthorizationConfig:
        """Load configuration from environment variables."""
        super_users = os.getenv("AUTHZ_SUPER_USERS", "")
        return cls(
            enabled=os.getenv("AUTHZ_ENABLED", "false").lower() == "true",
            config_file=os.getenv("AUTHZ_CONFIG_FILE"),
            super_users=tuple(s.strip() for s in super_users.split(",") if s.strip()),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        metastore: Metadata store configuration
        zookeeper: ZooKeeper configuration (if backend is ZOOKEEPER)
        sqlite: SQLite configuration (if backend is SQLITE)
        rest: Admin API configuration
        authorization: Authorization configuration
        observability: Logging configuration
    """

    metastore: MetaStoreConfig = field(default_factory=MetaStoreConfig)
    zookeeper: ZookeeperConfig = field(default_factory=ZookeeperConfig)
    sqlite: SqliteConfig = field(default_factory=SqliteConfig)
    rest: RestConfig = field(default_factory=RestConfig)
    authorization: AuthorizationConfig = field(default_factory=AuthorizationConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            metastore=MetaStoreConfig.from_env(),
            zookeeper=ZookeeperConfig.from_env(),
            sqlite=SqliteConfig.from_env(),
            rest=RestConfig.from_env(),
            authorization=AuthorizationConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.rest.deployed_region:
            raise ValueError("DEPLOYED_REGION is required")

        if not self.metastore.root_path.startswith("/") or self.metastore.root_path == "/":
            raise ValueError("METASTORE_ROOT must be an absolute path below '/'")

        if self.metastore.backend == MetaStoreBackend.ZOOKEEPER and not self.zookeeper.hosts:
            raise ValueError("ZK_HOSTS is required when METASTORE_BACKEND=zookeeper")
        if self.metastore.backend == MetaStoreBackend.SQLITE and not self.sqlite.db_path:
            raise ValueError("SQLITE_DB_PATH is required when METASTORE_BACKEND=sqlite")

        if self.authorization.enabled and not self.authorization.config_file:
            raise ValueError("AUTHZ_CONFIG_FILE is required when AUTHZ_ENABLED=true")

        if self.metastore.backend == MetaStoreBackend.MEMORY:
            logger.warning("In-memory metadata store configured; all metadata is lost on exit")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "metastore_backend": self.metastore.backend.value,
                "metastore_root": self.metastore.root_path,
                "zk_hosts": self.zookeeper.hosts
                if self.metastore.backend == MetaStoreBackend.ZOOKEEPER
                else None,
                "sqlite_db_path": self.sqlite.db_path
                if self.metastore.backend == MetaStoreBackend.SQLITE
                else None,
                "deployed_region": self.rest.deployed_region,
                "authz_enabled": self.authorization.enabled,
                "log_level": self.observability.log_level,
            },
        )
