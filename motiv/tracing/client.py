"""
Langfuse tracing client wrapper with graceful degradation.

Uses the Langfuse SDK v3 (OpenTelemetry-based) API. Tracing enables only
when both keys are configured and the startup auth check succeeds; in
every other case all operations are no-ops.
"""

import logging
from typing import Any, Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """
    Langfuse client wrapper.

    Handles missing credentials or connection failures without affecting
    request execution.
    """

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional[Langfuse] = None
        self._enabled = False
        self._error: Optional[str] = None

        if not public_key or not secret_key:
            self._error = "Langfuse credentials not configured"
            logger.debug(f"Tracing disabled: {self._error}")
            return

        if host and not host.startswith(("http://", "https://")):
            logger.warning(
                f"Langfuse host '{host}' may be malformed. "
                "Expected format: http://hostname:port or https://hostname:port."
            )

        try:
            kwargs: dict[str, Any] = {
                "public_key": public_key,
                "secret_key": secret_key,
                "debug": debug,
            }
            if host:
                kwargs["host"] = host
            self._client = Langfuse(**kwargs)
        except Exception as e:
            self._error = f"Failed to initialize Langfuse client: {e}"
            logger.warning(f"Tracing disabled: {self._error}")
            self._client = None
            return

        if self._check_auth():
            self._enabled = True
            logger.info(f"Langfuse tracing enabled (host: {host or 'default'})")

    @classmethod
    def from_config(cls, config: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=config.public_key,
            secret_key=config.secret_key,
            host=config.host,
            debug=config.debug,
        )

    @classmethod
    def disabled(cls) -> "TracingClient":
        """A client whose every operation is a no-op."""
        return cls()

    def _check_auth(self) -> bool:
        """Verify the endpoint is reachable and the keys are valid."""
        try:
            ok = self._client.auth_check()
        except Exception as e:
            ok = False
            self._error = f"Langfuse connectivity check failed: {e}"
        else:
            if not ok:
                self._error = (
                    "Langfuse auth_check() failed - endpoint may be unreachable or "
                    "credentials may be invalid"
                )
        if not ok:
            logger.warning(f"Tracing disabled: {self._error}")
            self._client = None
        return bool(ok)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def error(self) -> Optional[str]:
        """Why tracing is disabled, if it is."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        """The underlying Langfuse client (None if disabled)."""
        return self._client

    def flush(self) -> None:
        if not self._enabled or not self._client:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning(f"Failed to flush tracing events: {e}")

    def shutdown(self) -> None:
        """Flush remaining events and stop the client."""
        if not self._enabled or not self._client:
            return
        try:
            self._client.shutdown()
            logger.info("Langfuse tracing client shutdown complete")
        except Exception as e:
            logger.warning(f"Error during tracing client shutdown: {e}")
