"""
Tool result type returned to the model.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one tool call: either a success payload or an error payload.

    Use ``ToolResult.ok`` / ``ToolResult.error`` rather than the constructor.
    """
    payload: dict = field(default_factory=dict)
    is_error: bool = False

    @classmethod
    def ok(cls, **payload: Any) -> "ToolResult":
        return cls(payload=payload, is_error=False)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        return cls(payload={"error": message}, is_error=True)

    @property
    def message(self) -> Optional[str]:
        """Error message for error results, None otherwise."""
        return self.payload.get("error") if self.is_error else None

    @property
    def completion(self) -> Optional[tuple[str, str]]:
        """(title, summary) when this result signals the work is done."""
        if self.is_error or not self.payload.get("done"):
            return None
        return self.payload.get("title") or "", self.payload.get("summary") or ""

    def to_content(self) -> str:
        """Serialize the payload for the model."""
        return json.dumps(self.payload, ensure_ascii=False)
