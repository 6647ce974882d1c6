"""
Prompt construction for the agent loop.
"""

from ..models import APP_NAME, AttemptStatus, Project, Request
from ..workspace import MANIFEST_FILENAME


def build_system_prompt(project: Project) -> str:
    """System prompt describing the project and the working rules."""
    return f"""You are {APP_NAME}, an autonomous development agent. You are implementing a code change in a Git repository.

## Project
- Name: {project.name}
- Repository: {project.repo}
- Default branch: {project.default_branch or "main"}

## Instructions
1. Start by understanding the project structure. List directories and read key files (README, pyproject.toml, package.json, etc.) to understand the codebase.
2. Read the project's {MANIFEST_FILENAME} manifest if it exists for additional context about conventions and tech stack.
3. Plan your approach before making changes.
4. Implement the requested changes by reading and writing files.
5. If the project has tests, run them to verify your changes work.
6. When done, call the "done" tool with a short imperative title (max ~72 chars, e.g., "Add retry logic to payment webhook handler") and a longer summary of your changes.

## Rules
- Do NOT use git commands. {APP_NAME} handles all git operations.
- Make clean, minimal changes. Don't refactor unrelated code.
- Follow existing code style and conventions.
- If you encounter an issue you cannot resolve, call "done" with a summary explaining what went wrong.
- Be thorough but efficient with your context -- read files you need, don't read everything."""


def build_prior_work_context(request: Request) -> str:
    """Summary of earlier spec revisions and what was done for them."""
    lines = ["## Prior work on this branch", "", "Previous specs implemented:"]
    for spec in request.spec[:-1]:
        lines.append(f"- v{spec.version}: {spec.description}")

    summaries = [
        a.summary
        for a in request.attempts
        if a.status == AttemptStatus.SUCCEEDED and a.summary
    ]
    if summaries:
        lines.extend(["", "What was done:"])
        lines.extend(f"- {summary}" for summary in summaries)

    lines.extend(
        [
            "",
            "Those changes are already committed on this branch. Do NOT redo or revert them.",
        ]
    )
    return "\n".join(lines) + "\n"


def build_initial_message(request: Request) -> str:
    """First user message for a request, with prior-work context for amendments."""
    current = request.current_spec
    if not request.is_amendment:
        return (
            f"Please implement the following change:\n\n{current.description}\n\n"
            f"Start by exploring the project structure to understand the codebase."
        )

    return (
        f"{build_prior_work_context(request)}\n"
        f"## New amendment (v{current.version})\n\n"
        f"Please implement the following additional change:\n\n{current.description}\n\n"
        f"Start by reviewing the existing changes (use view_diff or read relevant files) "
        f"to understand what has already been done, then implement the new change."
    )
