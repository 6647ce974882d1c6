"""
Anthropic Messages API adapter.

The neutral tool catalog already uses Claude's ``input_schema`` shape, so
tools pass through unchanged.
"""

import logging
from typing import Any, Optional

from .base import ParsedResponse, ProviderAdapter, ToolCall, ToolOutput

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeAdapter(ProviderAdapter):
    """Adapter for the Anthropic Messages API."""

    name = "Claude"

    def format_request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": system_prompt,
            "tools": list(tools),
            "messages": messages,
        }

    def format_assistant_message(self, raw_content: Any) -> dict:
        return {"role": "assistant", "content": raw_content}

    def format_tool_results(self, results: list[ToolOutput]) -> dict:
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": r.call_id,
                    "content": r.content,
                }
                for r in results
            ],
        }

    def parse_response(self, api_response: dict) -> ParsedResponse:
        content = api_response.get("content") or []
        texts = [b.get("text", "") for b in content if b.get("type") == "text"]
        tool_calls = [
            ToolCall(id=b["id"], name=b["name"], input=b.get("input") or {})
            for b in content
            if b.get("type") == "tool_use"
        ]
        text = "\n".join(texts) or None
        done = api_response.get("stop_reason") == "end_turn" and not tool_calls
        return ParsedResponse(text=text, tool_calls=tool_calls, done=done, raw=content)

    def call(self, credential: Optional[str], formatted_request: dict) -> dict:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": credential or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        return self._post_json(self.api_url, headers, formatted_request)
