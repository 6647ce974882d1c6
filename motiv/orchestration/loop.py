"""
Agent loop.

Drives a bounded, turn-based conversation between one model backend and
the workspace tool executor. Each turn sends the full history plus the
tool catalog, appends the raw assistant turn unchanged, executes every
requested tool call in order and answers all of them in one tool-results
message before the next turn.

The loop ends on the first of: a natural end of turn, a turn without tool
calls, a ``done`` tool call, or the turn budget running out. It reports
the result as an AgentOutcome and never raises.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models import Project, Request
from ..providers import ParsedResponse, ProviderAdapter, ToolOutput
from ..tools import ToolExecutor, ToolResult
from ..tracing import TracingContext
from .prompts import build_initial_message, build_system_prompt

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 50
DEFAULT_SUMMARY = "Changes implemented"


@dataclass
class AgentTurn:
    """A single turn in the agent conversation."""

    turn_number: int
    text: Optional[str] = None
    tool_calls: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    is_final: bool = False


@dataclass
class AgentOutcome:
    """Result of one agent run: success with a summary, or failure with a reason."""

    success: bool
    summary: Optional[str] = None
    title: Optional[str] = None
    error: Optional[str] = None
    turns: int = 0

    @classmethod
    def succeeded(cls, summary: str, title: Optional[str] = None, turns: int = 0) -> "AgentOutcome":
        return cls(success=True, summary=summary, title=title, turns=turns)

    @classmethod
    def failed(cls, error: str, turns: int = 0) -> "AgentOutcome":
        return cls(success=False, error=error, turns=turns)


def _extract_usage(api_response: dict) -> tuple[Optional[int], Optional[int]]:
    """Input/output token counts from any supported backend response."""
    usage = api_response.get("usage") or {}
    if "input_tokens" in usage:
        return usage.get("input_tokens"), usage.get("output_tokens")
    if "prompt_tokens" in usage:
        return usage.get("prompt_tokens"), usage.get("completion_tokens")
    metadata = api_response.get("usageMetadata") or {}
    if metadata:
        return metadata.get("promptTokenCount"), metadata.get("candidatesTokenCount")
    return None, None


class AgentLoop:
    """
    Turn-based tool-calling loop for one request.

    Args:
        provider: Adapter for the configured model backend
        executor: Tool executor bound to the request's workspace
        credential: API credential for the backend (optional for some backends)
        max_turns: Turn budget
        execution_id: Identifier used to prefix log lines
        tracing_context: Optional Langfuse tracing for this execution
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        executor: ToolExecutor,
        credential: Optional[str] = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        execution_id: Optional[str] = None,
        tracing_context: Optional[TracingContext] = None,
    ):
        self.provider = provider
        self.executor = executor
        self.credential = credential
        self.max_turns = max_turns
        self.execution_id = execution_id
        self.tracing_context = tracing_context
        self.turns: list[AgentTurn] = []
        self._id_prefix = f"[{execution_id}] " if execution_id else ""

    def run(self, project: Project, request: Request) -> AgentOutcome:
        """
        Run the agent until completion or the turn budget is exhausted.

        Args:
            project: Project the request targets
            request: Request whose current spec is implemented

        Returns:
            AgentOutcome; backend and transport failures become failed outcomes
        """
        self.turns = []
        try:
            outcome = self._run_loop(project, request)
        except Exception as e:
            logger.error("%sAgent run failed: %s", self._id_prefix, e)
            outcome = AgentOutcome.failed(str(e), turns=len(self.turns))
        self._log_trace_summary(outcome)
        return outcome

    def _run_loop(self, project: Project, request: Request) -> AgentOutcome:
        """Core agent loop."""
        system_prompt = build_system_prompt(project)
        catalog = self.executor.catalog()
        messages = [self.provider.format_user_message(build_initial_message(request))]

        for turn_number in range(1, self.max_turns + 1):
            logger.info("%sAgent turn %d...", self._id_prefix, turn_number)
            turn = AgentTurn(turn_number=turn_number)
            self.turns.append(turn)

            parsed = self._call_provider(system_prompt, messages, catalog, turn_number)
            turn.text = parsed.text
            messages.append(self.provider.format_assistant_message(parsed.raw))

            if parsed.done or not parsed.tool_calls:
                turn.is_final = True
                return AgentOutcome.succeeded(
                    parsed.text or DEFAULT_SUMMARY, turns=turn_number
                )

            outputs: list[ToolOutput] = []
            for call in parsed.tool_calls:
                turn.tool_calls.append(call.name)
                result = self._execute_tool(call.name, call.input)
                if result.is_error:
                    turn.errors.append(f"{call.name}: {result.message}")

                completion = result.completion
                if completion is not None:
                    turn.is_final = True
                    title, summary = completion
                    return AgentOutcome.succeeded(
                        summary or DEFAULT_SUMMARY, title=title or None, turns=turn_number
                    )

                outputs.append(
                    ToolOutput(call_id=call.id, tool_name=call.name, content=result.to_content())
                )

            messages.append(self.provider.format_tool_results(outputs))

        logger.warning("%sMax turns (%d) reached", self._id_prefix, self.max_turns)
        return AgentOutcome.failed(
            f"Agent exceeded maximum turns ({self.max_turns})", turns=self.max_turns
        )

    def _call_provider(
        self,
        system_prompt: str,
        messages: list[dict],
        catalog: list[dict],
        turn_number: int,
    ) -> ParsedResponse:
        """Format, send and parse one model turn."""
        formatted = self.provider.format_request(system_prompt, messages, catalog)

        if self.tracing_context is None:
            return self.provider.parse_response(self.provider.call(self.credential, formatted))

        with self.tracing_context.generation(
            name=f"agent_turn_{turn_number}",
            model=self.provider.model,
            input=messages[-1],
        ) as gen:
            try:
                api_response = self.provider.call(self.credential, formatted)
                parsed = self.provider.parse_response(api_response)
            except Exception:
                gen.set_status("error")
                raise
            input_tokens, output_tokens = _extract_usage(api_response)
            gen.set_usage(input_tokens=input_tokens, output_tokens=output_tokens)
            gen.set_output(
                {
                    "text": (parsed.text or "")[:2000],
                    "tool_calls": [c.name for c in parsed.tool_calls],
                }
            )
            return parsed

    def _execute_tool(self, name: str, params: dict) -> ToolResult:
        """Execute one tool call, logging a short parameter preview."""
        preview = self.executor.preview(name, params)
        if preview:
            logger.info("%s  Tool: %s (%s)", self._id_prefix, name, preview)
        else:
            logger.info("%s  Tool: %s", self._id_prefix, name)

        if self.tracing_context is None:
            return self.executor.execute(name, params)

        with self.tracing_context.span(name=f"tool:{name}", input=params) as span:
            result = self.executor.execute(name, params)
            if result.is_error:
                span.set_status("error")
            content = result.to_content()
            span.set_output({"result": content[:500]})
            return result

    def _log_trace_summary(self, outcome: AgentOutcome) -> None:
        """Log a compact trace summary."""
        logger.info("%s%s", self._id_prefix, "─" * 50)
        logger.info("%sAGENT SUMMARY", self._id_prefix)
        logger.info("%s%s", self._id_prefix, "─" * 50)
        for turn in self.turns:
            label = " [FINAL]" if turn.is_final else ""
            tools = ", ".join(turn.tool_calls) or "-"
            logger.info("%sTurn %d%s: %s", self._id_prefix, turn.turn_number, label, tools)
            for error in turn.errors:
                logger.debug("%s  error: %s", self._id_prefix, error[:200])
        if outcome.success:
            logger.info("%sOutcome: success (%s)", self._id_prefix, outcome.title or outcome.summary)
        else:
            logger.info("%sOutcome: failed (%s)", self._id_prefix, outcome.error)

    def get_trace(self) -> list[dict]:
        """Trace of all turns, for display and debugging."""
        return [
            {
                "turn": t.turn_number,
                "text": t.text,
                "tool_calls": list(t.tool_calls),
                "errors": list(t.errors),
                "is_final": t.is_final,
            }
            for t in self.turns
        ]
