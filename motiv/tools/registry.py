"""
Tool Registry - pairs catalog entries with their handlers.

Provides per-executor registration of tools with their schema, handler,
and the short parameter preview used in progress logs.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .results import ToolResult


def _truncate(text: str, limit: int = 80) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def preview_path(params: dict) -> str:
    return str(params.get("path") or "")


def preview_pattern(params: dict) -> str:
    where = f" in {params['path']}" if params.get("path") else ""
    return _truncate(f'"{params.get("pattern", "")}"{where}')


def preview_command(params: dict) -> str:
    return _truncate(str(params.get("command") or ""))


def preview_title(params: dict) -> str:
    return _truncate(str(params.get("title") or ""))


@dataclass
class ToolDefinition:
    """Metadata for a tool - defined once, used everywhere."""

    name: str
    description: str
    input_schema: dict
    handler: Callable[[dict], ToolResult]
    preview: Callable[[dict], str]

    @property
    def required(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    def to_catalog_entry(self) -> dict:
        """Backend-neutral declaration sent to the provider adapter."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolRegistry:
    """Registry of the tools one executor exposes."""

    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def register(
        self,
        name: str,
        description: str,
        input_schema: dict,
        handler: Callable[[dict], ToolResult],
        preview: Callable[[dict], str] = preview_path,
    ) -> None:
        """Register a tool with its metadata."""
        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            input_schema=input_schema,
            handler=handler,
            preview=preview,
        )

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Get a tool by name."""
        return self._tools.get(name)

    def all_tools(self) -> dict[str, ToolDefinition]:
        """Get a copy of all registered tools."""
        return self._tools.copy()

    def catalog(self) -> list[dict]:
        """Tool declarations in registration order."""
        return [tool.to_catalog_entry() for tool in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
