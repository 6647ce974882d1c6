"""
Provider adapter interface.

Each model backend speaks its own wire format. An adapter translates
between that format and the small normalized vocabulary the agent loop
understands: a tool catalog, tool calls, tool outputs and a done flag.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import ProviderError
from .retry import RetryTransport


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    name: str
    input: dict


@dataclass(frozen=True)
class ToolOutput:
    """The answer to one ToolCall, as sent back to the model."""
    call_id: str
    tool_name: str
    content: str


@dataclass
class ParsedResponse:
    """A backend response normalized for the agent loop."""
    text: Optional[str]
    tool_calls: list[ToolCall] = field(default_factory=list)
    done: bool = False
    raw: Any = None


class ProviderAdapter(ABC):
    """
    Translates between the agent loop and one model backend.

    Messages are kept in the backend's native shape so assistant turns
    can be replayed verbatim.
    """

    name: str = ""
    requires_credential: bool = True

    def __init__(
        self,
        transport: RetryTransport,
        api_url: str,
        model: str,
        max_tokens: int = 16384,
    ):
        self.transport = transport
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens

    @abstractmethod
    def format_request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        """Build the backend request body from history and the neutral tool catalog."""

    @abstractmethod
    def format_assistant_message(self, raw_content: Any) -> dict:
        """Wrap a raw assistant turn for appending to history unchanged."""

    @abstractmethod
    def format_tool_results(self, results: list[ToolOutput]) -> dict:
        """Build the message answering every tool call of the previous turn."""

    def format_user_message(self, text: str) -> dict:
        return {"role": "user", "content": text}

    @abstractmethod
    def parse_response(self, api_response: dict) -> ParsedResponse:
        """Normalize a backend response."""

    @abstractmethod
    def call(self, credential: Optional[str], formatted_request: dict) -> dict:
        """Send a formatted request and return the decoded JSON body."""

    def _post_json(self, url: str, headers: dict, body: dict) -> dict:
        """POST through the retry transport, raising ProviderError on failure."""
        response = self.transport.post(url, headers=headers, json=body)
        if not response.ok:
            raise ProviderError(
                f"{self.name} API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} API returned invalid JSON: {e}") from e
