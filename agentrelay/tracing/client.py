"""
Process-wide Langfuse client.

Tracing is optional. The client stays disabled when credentials are
missing, rejected or the server cannot be reached, and every operation on
a disabled client does nothing.
"""

import logging
from typing import Any, Optional

from langfuse import Langfuse

from ..config import LangfuseConfig, config

logger = logging.getLogger(__name__)

AUTH_FAILED = "Langfuse auth_check() failed: credentials rejected or host unreachable"


class TracingClient:
    """Owns the Langfuse client; enabled only once it has authenticated."""

    def __init__(
        self,
        public_key: str = "",
        secret_key: str = "",
        host: str = "",
        debug: bool = False,
    ):
        self._client: Optional[Langfuse] = None
        self._error: Optional[str] = None

        if not (public_key and secret_key):
            self._error = "Langfuse credentials not configured"
            logger.debug("Tracing off: %s", self._error)
            return

        if host and not host.startswith(("http://", "https://")):
            logger.warning("Langfuse host %r has no http:// or https:// scheme", host)

        self._error = self._connect(public_key, secret_key, host, debug)
        if self._error:
            logger.warning("Tracing off: %s", self._error)
        else:
            logger.info("Tracing to Langfuse at %s", host or "the default host")

    @classmethod
    def from_config(cls, langfuse_config: LangfuseConfig) -> "TracingClient":
        return cls(
            public_key=langfuse_config.public_key,
            secret_key=langfuse_config.secret_key,
            host=langfuse_config.host,
            debug=langfuse_config.debug,
        )

    def _connect(self, public_key: str, secret_key: str, host: str, debug: bool) -> Optional[str]:
        """Create and verify the Langfuse client; returns an error message on failure."""
        options: dict[str, Any] = {
            "public_key": public_key,
            "secret_key": secret_key,
            "debug": debug,
        }
        if host:
            options["host"] = host

        try:
            client = Langfuse(**options)
        except Exception as e:
            return f"Failed to initialize Langfuse client: {e}"

        try:
            authenticated = client.auth_check()
        except Exception as e:
            return f"Langfuse connectivity check failed: {e}"
        if not authenticated:
            return AUTH_FAILED

        self._client = client
        return None

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def error(self) -> Optional[str]:
        """Why tracing is off, or None when enabled."""
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        """Send buffered events."""
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning("Langfuse flush failed: %s", e)

    def shutdown(self) -> None:
        """Flush and release the Langfuse client; the wrapper is disabled afterwards."""
        if self._client is None:
            return
        client, self._client = self._client, None
        self._error = "Tracing client shut down"
        try:
            client.shutdown()
        except Exception as e:
            logger.warning("Langfuse shutdown failed: %s", e)


_tracing_client: Optional[TracingClient] = None


def _install(client: TracingClient) -> TracingClient:
    global _tracing_client
    if _tracing_client is not None:
        _tracing_client.shutdown()
    _tracing_client = client
    return client


def init_tracing_client(
    public_key: str = "",
    secret_key: str = "",
    host: str = "",
    debug: bool = False,
) -> TracingClient:
    """Install the process-wide client, shutting down any previous one."""
    return _install(
        TracingClient(public_key=public_key, secret_key=secret_key, host=host, debug=debug)
    )


def init_tracing_from_config(langfuse_config: Optional[LangfuseConfig] = None) -> TracingClient:
    """Install the process-wide client from ``LANGFUSE_*`` settings."""
    return _install(TracingClient.from_config(langfuse_config or config.langfuse))


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    """Shut down and forget the process-wide client."""
    global _tracing_client
    if _tracing_client is not None:
        _tracing_client.shutdown()
        _tracing_client = None
