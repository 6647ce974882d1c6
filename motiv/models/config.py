"""
Configuration models for Motiv.

Defines dataclasses for the YAML configuration file and the credential
store. Instances are built by ``motiv.config_loader`` and passed explicitly
to the components that need them.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from ..errors import CredentialError
from .ledger import Autonomy

APP_NAME = "Motiv"
APP_NAME_LOWER = APP_NAME.lower()


class ProviderKind(Enum):
    """Supported model backends."""

    CLAUDE = "claude"
    GEMINI = "gemini"
    OPENAI_COMPATIBLE = "openai_compatible"


# Backend defaults: (api_url, model, credential env var)
PROVIDER_DEFAULTS: dict[ProviderKind, tuple[str, str, str]] = {
    ProviderKind.CLAUDE: (
        "https://api.anthropic.com/v1/messages",
        "claude-sonnet-4-20250514",
        "ANTHROPIC_API_KEY",
    ),
    ProviderKind.GEMINI: (
        "https://generativelanguage.googleapis.com/v1beta/models",
        "gemini-2.5-pro",
        "GEMINI_API_KEY",
    ),
    ProviderKind.OPENAI_COMPATIBLE: (
        "http://localhost:8001/v1",
        "gpt-4o",
        "OPENAI_API_KEY",
    ),
}


def default_home() -> str:
    """Home directory for Motiv state, overridable with ``MOTIV_HOME``."""
    return os.environ.get("MOTIV_HOME") or str(Path.home() / f".{APP_NAME_LOWER}")


@dataclass
class PathsConfig:
    """Filesystem locations."""
    home: str = field(default_factory=default_home)

    @property
    def home_dir(self) -> Path:
        return Path(self.home).expanduser()

    @property
    def ledger(self) -> Path:
        return self.home_dir / "ledger"

    @property
    def workspaces(self) -> Path:
        return self.home_dir / "workspaces"

    @property
    def env_file(self) -> Path:
        return self.home_dir / ".env"

    def workspace_for(self, project_name: str) -> Path:
        """Workspace checkout directory for a project."""
        return self.workspaces / project_name


@dataclass
class ProviderConfig:
    """Configuration for the model backend."""
    kind: ProviderKind = ProviderKind.CLAUDE
    api_url: str = ""
    model: str = ""
    credential_name: str = ""
    max_tokens: int = 16384

    def __post_init__(self) -> None:
        default_url, default_model, default_credential = PROVIDER_DEFAULTS[self.kind]
        self.api_url = self.api_url or default_url
        self.model = self.model or default_model
        self.credential_name = self.credential_name or default_credential


@dataclass
class RetryConfig:
    """Bounded retry policy for outbound HTTP calls."""
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    timeout: float = 300.0


@dataclass
class AgentConfig:
    """Configuration for the agent loop and its tools."""
    max_turns: int = 50
    command_timeout: int = 600
    max_output_chars: int = 50_000


@dataclass
class RequestPolicyConfig:
    """Retry and escalation policy for requests."""
    max_failed_attempts: int = 2


@dataclass
class GitHubConfig:
    """Configuration for the pull-request hosting API."""
    api_url: str = "https://api.github.com"
    credential_name: str = "GITHUB_TOKEN"
    merge_method: str = "squash"


@dataclass
class ServerConfig:
    """Configuration for the status API server."""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = ""
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Application configuration container.

    Holds all configuration sections loaded from config.yaml.
    """
    version: str = "1.0"
    paths: PathsConfig = field(default_factory=PathsConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    requests: RequestPolicyConfig = field(default_factory=RequestPolicyConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)
    default_autonomy: Autonomy = Autonomy.DRAFT_PR

    @property
    def log_level(self) -> str:
        return self.logging.level


class Credentials:
    """Immutable credential values, read once at startup."""

    def __init__(self, values: Mapping[str, str], source: Optional[Path] = None):
        self._values = MappingProxyType(dict(values))
        self._source = source

    def get(self, name: str) -> Optional[str]:
        """Return the credential value, or None when unset or empty."""
        return self._values.get(name) or None

    def resolve(self, name: str) -> str:
        """
        Return the credential value for an environment variable name.

        Raises:
            CredentialError: If the credential is unset or empty.
        """
        value = self.get(name)
        if not value:
            where = f" in {self._source}" if self._source else ""
            raise CredentialError(
                f'Credential "{name}" not found. Set it{where} or as an environment variable.'
            )
        return value

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
