"""
Signal Agent Exception Hierarchy

Exception Classes:
- SignalAgentError: Base exception (retryable=False)
- ConfigurationError: Missing credentials / settings (non-retryable)
    - SearchConfigurationError, LLMConfigurationError, DeliveryConfigurationError
- TransientFetchError: External API call failed (retryable=True)
- EmptyResultError: Search succeeded but nothing survived deduplication
- NodeExecutionError: A pipeline step raised, timed out, or returned a bad update
- GraphDefinitionError: Pipeline graph failed validation at construction time
- DeliveryError: Broadcast could not be attempted

Retry Logic:
- Nothing in the pipeline retries. `retryable` only tells the caller (cron
  runner, scripts) whether running the next cycle could succeed.
"""

from typing import Optional


class SignalAgentError(Exception):
    """Base exception for the signal agent."""

    retryable: bool = False


class ConfigurationError(SignalAgentError):
    """A required API key or setting is missing."""


class SearchConfigurationError(ConfigurationError):
    """Search provider credentials are missing."""


class LLMConfigurationError(ConfigurationError):
    """LLM provider credentials are missing."""


class DeliveryConfigurationError(ConfigurationError):
    """Telegram bot token is missing."""


class TransientFetchError(SignalAgentError):
    """An external call failed (HTTP error, timeout, malformed payload)."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EmptyResultError(SignalAgentError):
    """Search ran successfully but produced no usable documents."""


class NodeExecutionError(SignalAgentError):
    """
    A pipeline step failed.

    Attributes:
        node_name: Name of the node that failed
        cause: Original exception (None when the engine itself rejected the step)
    """

    def __init__(self, node_name: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Node '{node_name}': {message}")
        self.node_name = node_name
        self.cause = cause

    @classmethod
    def from_exception(cls, node_name: str, exc: BaseException) -> "NodeExecutionError":
        name = exc.__class__.__name__
        message = f"{name}: {exc}" if str(exc) else name
        return cls(node_name, message, cause=exc)


class GraphDefinitionError(SignalAgentError, ValueError):
    """Pipeline graph is malformed (unknown node, missing entry, cycle...)."""


class DeliveryError(SignalAgentError):
    """Broadcast could not be attempted (no recipients, bot failure)."""
