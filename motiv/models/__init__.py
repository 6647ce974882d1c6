"""
Data models for Motiv.
"""

from .ledger import (
    SCHEMA_VERSION,
    Attempt,
    AttemptStatus,
    Autonomy,
    LedgerEvent,
    LogEntry,
    Origin,
    Project,
    Request,
    RequestStatus,
    Spec,
)
from .config import (
    APP_NAME,
    APP_NAME_LOWER,
    ProviderKind,
    PathsConfig,
    ProviderConfig,
    RetryConfig,
    AgentConfig,
    RequestPolicyConfig,
    GitHubConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
    Credentials,
)

__all__ = [
    # Ledger models
    "SCHEMA_VERSION",
    "Attempt",
    "AttemptStatus",
    "Autonomy",
    "LedgerEvent",
    "LogEntry",
    "Origin",
    "Project",
    "Request",
    "RequestStatus",
    "Spec",
    # Config models
    "APP_NAME",
    "APP_NAME_LOWER",
    "ProviderKind",
    "PathsConfig",
    "ProviderConfig",
    "RetryConfig",
    "AgentConfig",
    "RequestPolicyConfig",
    "GitHubConfig",
    "ServerConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
    "Credentials",
]
