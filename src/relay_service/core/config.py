"""
Configuration settings for the Relay Service.
"""
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Relay Service configuration loaded from environment variables.

    Defaults are meant for local development against a NATS server on
    localhost. Production deployments set the broker URL, TLS files and
    relay topics explicitly.
    """
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_name: str = "relay-service"
    service_version: str = "0.1.0"
    service_host: str = "0.0.0.0"
    service_port: int = 3011
    debug: bool = False
    cors_origins: List[str] = ["*"]

    # Broker adapter
    broker_adapter: Literal["nats", "memory"] = "nats"

    # NATS settings
    nats_url: str = "nats://localhost:4222"
    nats_reconnect_time_wait: int = 1  # seconds
    nats_max_reconnect_attempts: int = -1  # -1 = infinite
    nats_subject_prefix: str = ""

    # Broker credentials (user/password or token; unset for anonymous access)
    nats_user: Optional[str] = None
    nats_password: Optional[str] = None
    nats_token: Optional[str] = None

    # Mutual TLS (all three files are needed for client auth, CA alone for server auth)
    tls_ca_file: Optional[str] = None
    tls_cert_file: Optional[str] = None
    tls_key_file: Optional[str] = None

    # Topics relayed to viewers (JSON list in the environment, e.g. '["orders.>"]')
    relay_topics: List[str] = [">"]

    # Correlation search bound
    correlation_max_depth: int = 10

    # Viewer stream settings
    viewer_queue_size: int = 1000
    stream_heartbeat_interval: int = 15  # seconds


# Global settings instance
settings = Settings()
