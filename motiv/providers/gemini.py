"""
Google Gemini generateContent adapter.

Gemini differs from the Messages API in three ways that matter here:
roles are ``user``/``model``, tools are declared as
``functionDeclarations``, and function calls carry no identifiers. Call
ids are synthesized from a per-adapter counter so the agent loop can pair
calls with results.
"""

import itertools
import logging
from typing import Any, Optional

from ..errors import ProviderError
from .base import ParsedResponse, ProviderAdapter, ToolCall, ToolOutput

logger = logging.getLogger(__name__)


class GeminiAdapter(ProviderAdapter):
    """Adapter for the Gemini generateContent API."""

    name = "Gemini"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._call_ids = itertools.count(1)

    @staticmethod
    def format_tools(tools: list[dict]) -> list[dict]:
        """Convert the neutral catalog to a single functionDeclarations block."""
        return [
            {
                "functionDeclarations": [
                    {
                        "name": tool["name"],
                        "description": tool["description"],
                        "parameters": tool["input_schema"],
                    }
                    for tool in tools
                ]
            }
        ]

    def format_request(self, system_prompt: str, messages: list[dict], tools: list[dict]) -> dict:
        return {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": messages,
            "tools": self.format_tools(tools),
            "generationConfig": {"maxOutputTokens": self.max_tokens},
        }

    def format_user_message(self, text: str) -> dict:
        return {"role": "user", "parts": [{"text": text}]}

    def format_assistant_message(self, raw_content: Any) -> dict:
        # raw_content is candidates[0].content.parts, replayed as-is
        return {"role": "model", "parts": raw_content}

    def format_tool_results(self, results: list[ToolOutput]) -> dict:
        return {
            "role": "user",
            "parts": [
                {
                    "functionResponse": {
                        "name": r.tool_name,
                        "response": {"content": r.content},
                    }
                }
                for r in results
            ],
        }

    def parse_response(self, api_response: dict) -> ParsedResponse:
        candidates = api_response.get("candidates") or []
        if not candidates:
            raise ProviderError("Gemini returned no candidates")
        candidate = candidates[0]

        parts = (candidate.get("content") or {}).get("parts") or []
        texts = [p["text"] for p in parts if p.get("text")]
        tool_calls = [
            ToolCall(
                id=f"gemini_call_{next(self._call_ids)}",
                name=p["functionCall"]["name"],
                input=p["functionCall"].get("args") or {},
            )
            for p in parts
            if p.get("functionCall")
        ]

        text = "\n".join(texts) or None
        done = candidate.get("finishReason") == "STOP" and not tool_calls
        return ParsedResponse(text=text, tool_calls=tool_calls, done=done, raw=parts)

    def call(self, credential: Optional[str], formatted_request: dict) -> dict:
        url = f"{self.api_url.rstrip('/')}/{self.model}:generateContent"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": credential or "",
        }
        return self._post_json(url, headers, formatted_request)
