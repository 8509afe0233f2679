"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment (and ``.env``), case-insensitive."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="postcomment", description="Service name")
    app_version: str = Field(default="0.1.0", description="Service version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=True, description="Expose debug details")

    # Server (python -m postcomment)
    api_host: str = Field(default="0.0.0.0", description="Bind address")
    api_port: int = Field(default=8000, description="Bind port")
    api_workers: int = Field(default=1, ge=1, description="Uvicorn worker processes")
    api_reload: bool = Field(default=False, description="Reload on code changes")

    # Redis (read-through cache)
    redis_url: str = Field(
        default="redis://localhost:6379/0", description="Cache Redis URL"
    )
    redis_max_connections: int = Field(default=10, description="Pool size")
    redis_socket_timeout: float = Field(default=1.0, description="Command timeout")
    redis_socket_connect_timeout: float = Field(
        default=1.0, description="Connect timeout"
    )
    redis_retry_on_timeout: bool = Field(
        default=False, description="Retry a command once after a timeout"
    )
    redis_health_check_interval: int = Field(
        default=30, description="Seconds between idle connection checks"
    )
    redis_retry_backoff_seconds: float = Field(
        default=5.0, ge=0, description="Bypass Redis this long after a failure"
    )

    # Cassandra (system of record)
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Contact points"
    )
    cassandra_port: int = Field(default=9042, description="Native protocol port")
    cassandra_keyspace: str = Field(
        default="postcomment", description="Keyspace holding posts and comments"
    )
    cassandra_username: str | None = Field(default=None, description="Auth user")
    cassandra_password: str | None = Field(default=None, description="Auth password")
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Cache TTLs (seconds)
    cache_enabled: bool = Field(default=True, description="Use Redis when reachable")
    cache_ttl_feed_latest_seconds: int = Field(
        default=300, ge=1, description="post:latest"
    )
    cache_ttl_post_seconds: int = Field(default=600, ge=1, description="post:{id}")
    cache_ttl_comment_tree_seconds: int = Field(
        default=300, ge=1, description="comments:tree:{post_id}"
    )
    cache_ttl_comment_top_seconds: int = Field(
        default=60,
        ge=1,
        description="comments:top:{post_id}; comment writes do not invalidate it",
    )
    cache_ttl_comment_count_seconds: int = Field(
        default=600,
        ge=1,
        description="comments:count:{post_id}; comment writes do not invalidate it",
    )

    # Feeds and ids
    feed_page_size: int = Field(
        default=10, ge=1, le=100, description="Rows per keyset page"
    )
    snowflake_worker_id: int = Field(
        default=1,
        ge=0,
        le=1023,
        description="First worker id tried when leasing one at startup",
    )
    worker_lease_ttl_seconds: int = Field(
        default=60, ge=6, description="Worker id lease TTL; renewed every third"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Console renderer"
    )
    log_include_caller_info: bool = Field(
        default=False, description="Add filename, line and function to events"
    )
    log_dir: str = Field(default="logs", description="Rotating log file directory")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Rotate after this many bytes"
    )
    log_file_backup_count: int = Field(default=5, description="Rotated files kept")
    log_requests: bool = Field(default=True, description="Access log on/off")
    log_exclude_paths: list[str] = Field(
        default=["/health"], description="Path prefixes left out of the access log"
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="Allowed origins")
    cors_allow_credentials: bool = Field(default=False, description="Allow cookies")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE"], description="Allowed methods"
    )
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="Preflight cache seconds")

    @model_validator(mode="after")
    def check_cors(self) -> "Settings":
        """Browsers reject credentialed requests to a wildcard origin."""
        if self.cors_allow_credentials and "*" in self.cors_origins:
            msg = "cors_allow_credentials requires explicit cors_origins"
            raise ValueError(msg)
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
