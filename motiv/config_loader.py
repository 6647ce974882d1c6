"""
Configuration loader for Motiv.

Loads configuration from a YAML file with support for environment
variable interpolation, and credentials from a dotenv file overlaid by
the process environment.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import dotenv_values

from .models import (
    Autonomy,
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
from .models.config import default_home

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MOTIV_CONFIG"
CONFIG_FILENAME = "config.yaml"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """
    Recursively substitute environment variables in a data structure.

    Args:
        data: Any data structure (dict, list, str, etc.)

    Returns:
        Data structure with env vars resolved
    """
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _parse_paths_config(data: dict) -> PathsConfig:
    """Parse paths configuration from dict."""
    return PathsConfig(home=data.get("home") or default_home())


def _parse_provider_config(data: dict) -> ProviderConfig:
    """Parse provider configuration from dict."""
    kind_str = data.get("kind", ProviderKind.CLAUDE.value)
    try:
        kind = ProviderKind(kind_str)
    except ValueError:
        allowed = ", ".join(k.value for k in ProviderKind)
        raise ValueError(f"Unknown provider kind: {kind_str} (expected one of: {allowed})")

    return ProviderConfig(
        kind=kind,
        api_url=data.get("api_url", ""),
        model=data.get("model", ""),
        credential_name=data.get("credential", ""),
        max_tokens=int(data.get("max_tokens", 16384)),
    )


def _parse_retry_config(data: dict) -> RetryConfig:
    """Parse retry configuration from dict."""
    return RetryConfig(
        max_retries=int(data.get("max_retries", 5)),
        base_delay=float(data.get("base_delay", 1.0)),
        max_delay=float(data.get("max_delay", 60.0)),
        timeout=float(data.get("timeout", 300.0)),
    )


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse agent loop configuration from dict."""
    return AgentConfig(
        max_turns=int(data.get("max_turns", 50)),
        command_timeout=int(data.get("command_timeout", 600)),
        max_output_chars=int(data.get("max_output_chars", 50_000)),
    )


def _parse_request_policy_config(data: dict) -> RequestPolicyConfig:
    """Parse request retry policy from dict."""
    return RequestPolicyConfig(
        max_failed_attempts=int(data.get("max_failed_attempts", 2)),
    )


def _parse_github_config(data: dict) -> GitHubConfig:
    """Parse GitHub configuration from dict."""
    return GitHubConfig(
        api_url=data.get("api_url", "https://api.github.com").rstrip("/"),
        credential_name=data.get("credential", "GITHUB_TOKEN"),
        merge_method=data.get("merge_method", "squash"),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server configuration from dict."""
    return ServerConfig(
        host=data.get("host", "127.0.0.1"),
        port=int(data.get("port", 8000)),
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=str(data.get("level", "INFO")).upper(),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", ""),
        secret_key=data.get("secret_key", ""),
        host=data.get("host", "https://cloud.langfuse.com"),
        debug=_parse_bool(data.get("debug", False)),
    )


def default_config_path() -> Path:
    """Config file location: ``MOTIV_CONFIG`` or ``<home>/config.yaml``."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path(default_home()).expanduser() / CONFIG_FILENAME


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file. If None, uses the
              MOTIV_CONFIG env var or ``~/.motiv/config.yaml``.

    Returns:
        AppConfig with all configuration loaded. A missing file yields
        the defaults.

    Raises:
        ValueError: If the config is invalid
    """
    config_path = Path(path) if path is not None else default_config_path()

    if not config_path.exists():
        logger.debug(f"No configuration at {config_path}, using defaults")
        return AppConfig()

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    # Substitute environment variables throughout the config
    raw_config = _substitute_env_vars_recursive(raw_config)

    app_config = AppConfig(
        version=str(raw_config.get("version", "1.0")),
        paths=_parse_paths_config(raw_config.get("paths") or {}),
        provider=_parse_provider_config(raw_config.get("provider") or {}),
        retry=_parse_retry_config(raw_config.get("retry") or {}),
        agent=_parse_agent_config(raw_config.get("agent") or {}),
        requests=_parse_request_policy_config(raw_config.get("requests") or {}),
        github=_parse_github_config(raw_config.get("github") or {}),
        server=_parse_server_config(raw_config.get("server") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
        default_autonomy=Autonomy.parse(
            raw_config.get("default_autonomy", Autonomy.DRAFT_PR.value)
        ),
    )

    logger.debug(
        f"Configuration loaded: provider={app_config.provider.kind.value}, "
        f"model={app_config.provider.model}, home={app_config.paths.home_dir}"
    )

    return app_config


def load_credentials(paths: PathsConfig) -> Credentials:
    """
    Read credentials once from ``<home>/.env`` and the process environment.

    Environment variables take precedence over the dotenv file.

    Args:
        paths: Paths configuration locating the env file

    Returns:
        Immutable Credentials mapping
    """
    env_file = paths.env_file
    values: dict[str, str] = {}
    if env_file.exists():
        logger.debug(f"Loading credentials from {env_file}")
        values.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    values.update(os.environ)
    return Credentials(values, source=env_file)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and server."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

