"""
OpenAI chat-completions adapter.

Works against any server exposing ``/chat/completions`` in the OpenAI wire
format (vLLM, Ollama, SGLang, OpenAI). Self-hosted servers usually need no
API key, so the credential is optional.
"""

import json
import logging
from typing import Any, Optional

from ..errors import ProviderError
from .base import ParsedResponse, ProviderAdapter, ToolCall, ToolOutput

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """Adapter for OpenAI-compatible chat-completions endpoints."""

    name = "OpenAI-compatible"
    requires_credential = False

    @staticmethod
    def format_tools(tools: list[dict]) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool["description"],
                    "parameters": tool["input_schema"],
                },
            }
            for tool in tools
        ]

    def format_request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        history: list[dict] = [{"role": "system", "content": system_prompt}]
        for message in messages:
            # A tool-results turn is stored as one entry; the wire format
            # wants one message per call
            if message.get("role") == "tool_results":
                history.extend(message["messages"])
            else:
                history.append(message)
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": history,
            "tools": self.format_tools(tools),
        }

    def format_assistant_message(self, raw_content: Any) -> dict:
        # raw_content is choices[0].message, replayed as-is
        return dict(raw_content)

    def format_tool_results(self, results: list[ToolOutput]) -> dict:
        return {
            "role": "tool_results",
            "messages": [
                {
                    "role": "tool",
                    "tool_call_id": r.call_id,
                    "name": r.tool_name,
                    "content": r.content,
                }
                for r in results
            ],
        }

    def parse_response(self, api_response: dict) -> ParsedResponse:
        choices = api_response.get("choices") or []
        if not choices:
            raise ProviderError(f"{self.name} returned no choices")
        choice = choices[0]
        message = choice.get("message") or {}

        tool_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            arguments = function.get("arguments") or "{}"
            try:
                parsed_args = json.loads(arguments) if isinstance(arguments, str) else arguments
            except json.JSONDecodeError:
                logger.warning(f"Unparseable tool arguments for {function.get('name')}: {arguments[:200]}")
                parsed_args = {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id", ""),
                    name=function.get("name", ""),
                    input=parsed_args if isinstance(parsed_args, dict) else {},
                )
            )

        text = message.get("content") or None
        done = choice.get("finish_reason") == "stop" and not tool_calls
        return ParsedResponse(text=text, tool_calls=tool_calls, done=done, raw=message)

    def call(self, credential: Optional[str], formatted_request: dict) -> dict:
        url = f"{self.api_url.rstrip('/')}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return self._post_json(url, headers, formatted_request)
