"""
Pytest configuration and fixtures for Motiv tests.
"""

import subprocess
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock

import pytest

from motiv.errors import ProviderError
from motiv.ledger import LedgerStore
from motiv.lifecycle import RequestLifecycle
from motiv.models import AppConfig, PathsConfig
from motiv.providers import ParsedResponse, ProviderAdapter, ToolCall, ToolOutput


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), capture_output=True, text=True, check=True
    )
    return result.stdout


class ScriptedProvider(ProviderAdapter):
    """Provider that replays a fixed list of parsed responses."""

    name = "Scripted"
    requires_credential = False

    def __init__(self, responses: list):
        super().__init__(MagicMock(), api_url="http://scripted", model="scripted-model")
        self.responses = list(responses)
        self.requests: list[dict] = []

    def format_request(self, system_prompt, messages, tools):
        return {"system": system_prompt, "messages": list(messages), "tools": tools}

    def format_assistant_message(self, raw_content):
        return {"role": "assistant", "content": raw_content}

    def format_tool_results(self, results: list[ToolOutput]):
        return {
            "role": "user",
            "results": [{"id": r.call_id, "name": r.tool_name, "content": r.content} for r in results],
        }

    def parse_response(self, api_response):
        return api_response["parsed"]

    def call(self, credential, formatted_request):
        self.requests.append(formatted_request)
        if not self.responses:
            raise ProviderError("Scripted provider ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return {"parsed": response}


def tool_turn(*calls: tuple, text: Optional[str] = None) -> ParsedResponse:
    """A model turn requesting the given (name, input) tool calls."""
    tool_calls = [
        ToolCall(id=f"call_{i}", name=name, input=params)
        for i, (name, params) in enumerate(calls, start=1)
    ]
    return ParsedResponse(text=text, tool_calls=tool_calls, done=False, raw=text)


@pytest.fixture(autouse=True)
def git_identity(monkeypatch, tmp_path_factory):
    """Isolate git from the user's global configuration."""
    global_config = tmp_path_factory.getbasetemp() / "gitconfig"
    global_config.touch()
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


@pytest.fixture
def scripted_provider():
    """Factory for providers that replay the given responses in order."""

    def _make(*responses) -> ScriptedProvider:
        return ScriptedProvider(list(responses))

    return _make


@pytest.fixture
def make_tool_turn():
    return tool_turn


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Configuration rooted in a temporary home directory."""
    return AppConfig(paths=PathsConfig(home=str(tmp_path / "home")))


@pytest.fixture
def ledger(app_config) -> LedgerStore:
    """An initialized, empty ledger."""
    store = LedgerStore(app_config.paths.ledger)
    store.initialize()
    return store


@pytest.fixture
def lifecycle(ledger) -> RequestLifecycle:
    return RequestLifecycle(ledger, max_failed_attempts=2)


@pytest.fixture
def make_origin_repo(tmp_path):
    """
    Factory for a bare "remote" repository with one commit on main.

    Args:
        files: Mapping of relative path to content for the initial commit
    """

    def _make(files: Optional[dict] = None) -> Path:
        seed = tmp_path / "seed"
        seed.mkdir()
        _git(seed, "init", "-q")
        _git(seed, "symbolic-ref", "HEAD", "refs/heads/main")
        for name, content in (files or {"README.md": "# Sample\n"}).items():
            path = seed / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        _git(seed, "add", "-A")
        _git(seed, "commit", "-q", "-m", "Initial commit")
        origin = tmp_path / "origin.git"
        _git(tmp_path, "clone", "-q", "--bare", str(seed), str(origin))
        return origin

    return _make


@pytest.fixture
def origin_repo(make_origin_repo) -> Path:
    return make_origin_repo()


@pytest.fixture
def git():
    """Run git in a directory and return stdout."""
    return _git
