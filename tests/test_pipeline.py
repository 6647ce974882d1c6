"""End-to-end tests for the request pipeline against real git repositories."""

import json
import shutil
from unittest.mock import Mock

import pytest

from motiv.errors import HostingError, IneligibleRequestError, ProjectExistsError, ProjectNotFoundError
from motiv.hosting import GitHubClient, PullRequest
from motiv.models import Autonomy, Credentials, LedgerEvent, RequestStatus
from motiv.pipeline import NO_CHANGES_REASON, RequestPipeline, dashboard_order

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

PR_URL = "https://github.com/acme/app/pull/7"


def _hosting() -> Mock:
    hosting = Mock(spec=GitHubClient)
    hosting.open_or_reuse.return_value = PullRequest(number=7, html_url=PR_URL)
    hosting.enable_auto_merge.return_value = True
    return hosting


def _writes_hello(make_tool_turn) -> list:
    return [
        make_tool_turn(("write_file", {"path": "hello.txt", "content": "hello\n"})),
        make_tool_turn(("done", {"title": "Add hello file", "summary": "Added hello.txt"})),
    ]


@pytest.fixture
def make_pipeline(app_config, ledger):
    def _make(provider, hosting=None) -> RequestPipeline:
        return RequestPipeline(
            app_config,
            Credentials({}),
            ledger=ledger,
            provider=provider,
            hosting=hosting,
        )

    return _make


class TestProjectsAndSubmission:
    """Tests for ledger-only pipeline operations."""

    def test_register_project(self, make_pipeline, ledger, origin_repo):
        pipeline = make_pipeline(None)
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        assert project.autonomy == Autonomy.EXECUTE_LOCAL
        assert ledger.read_project("app") == project
        assert ledger.history(1) == ["Register project: app"]

    def test_register_duplicate_project(self, make_pipeline, origin_repo):
        pipeline = make_pipeline(None)
        pipeline.register_project("app", str(origin_repo))
        with pytest.raises(ProjectExistsError):
            pipeline.register_project("app", str(origin_repo))

    def test_submit_unknown_project(self, make_pipeline):
        with pytest.raises(ProjectNotFoundError):
            make_pipeline(None).submit("ghost", "desc")

    def test_resolve_autonomy(self, make_pipeline, origin_repo):
        pipeline = make_pipeline(None)
        project = pipeline.register_project("app", str(origin_repo))
        assert pipeline.resolve_autonomy(project) == Autonomy.DRAFT_PR
        assert pipeline.resolve_autonomy(project, "full") == Autonomy.FULL
        with pytest.raises(ValueError, match="Invalid autonomy level"):
            pipeline.resolve_autonomy(project, "yolo")

    def test_ingest_only_does_not_execute(self, make_pipeline, scripted_provider, origin_repo):
        provider = scripted_provider()
        pipeline = make_pipeline(provider)
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")
        result = pipeline.execute(project, request, Autonomy.INGEST_ONLY)
        assert result.success
        assert result.request.status == RequestStatus.INGESTED
        assert provider.requests == []


class TestExecuteLocal:
    """Tests for the execute_local autonomy level."""

    def test_successful_execution(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, app_config, ledger, git):
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)))
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Add a hello file")

        result = pipeline.execute(project, request)

        assert result.success
        stored = ledger.get_request(request.id)
        assert stored.status == RequestStatus.SUCCEEDED
        assert len(stored.attempts) == 1
        assert stored.attempts[0].commit == result.commit
        assert stored.attempts[0].summary == "Added hello.txt"
        assert stored.pr_url is None

        transitions = [
            (e.from_status, e.to_status)
            for e in ledger.read_logs(request.id)
            if e.event == LedgerEvent.STATUS_CHANGED
        ]
        assert transitions == [(RequestStatus.INGESTED, RequestStatus.EXECUTING)]

        workspace = app_config.paths.workspace_for("app")
        assert (workspace / "hello.txt").read_text() == "hello\n"
        assert git(workspace, "rev-parse", "--abbrev-ref", "HEAD").strip() == "motiv/REQ-0001"
        assert git(workspace, "log", "-1", "--format=%s").strip() == "REQ-0001: Add hello file"

    def test_no_changes_is_a_failed_attempt(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger):
        pipeline = make_pipeline(
            scripted_provider(make_tool_turn(("done", {"title": "Nothing", "summary": "No-op"})))
        )
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Do nothing")

        result = pipeline.execute(project, request)

        assert not result.success
        stored = ledger.get_request(request.id)
        assert stored.status == RequestStatus.FAILED
        assert stored.attempts[0].reason == NO_CHANGES_REASON

    def test_failing_test_command(self, make_pipeline, scripted_provider, make_tool_turn, make_origin_repo, ledger):
        manifest = {"tech_stack": {"test_command": "echo broken test >&2; exit 1"}}
        origin = make_origin_repo({"README.md": "# App\n", ".motiv.json": json.dumps(manifest)})
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)))
        project = pipeline.register_project("app", str(origin), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Add hello")

        result = pipeline.execute(project, request)

        stored = ledger.get_request(request.id)
        assert not result.success
        assert stored.status == RequestStatus.FAILED
        assert stored.attempts[0].reason.startswith("Tests failed: broken test")
        assert stored.attempts[0].commit == result.commit

    def test_agent_failure_then_escalation(self, make_pipeline, scripted_provider, origin_repo, ledger):
        pipeline = make_pipeline(scripted_provider())
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Add hello")

        first = pipeline.execute(project, request)
        assert first.request.status == RequestStatus.FAILED
        assert "ran out of responses" in first.request.attempts[0].reason

        retried = pipeline.retry(request.id)
        assert retried.status == RequestStatus.RETRYING
        second = pipeline.execute(project, retried)
        assert second.request.status == RequestStatus.NEEDS_HUMAN
        assert len(second.request.attempts) == 2

    def test_retry_rejected_for_succeeded_request(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo):
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)))
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Add hello")
        pipeline.execute(project, request)
        with pytest.raises(IneligibleRequestError):
            pipeline.retry(request.id)

    def test_forced_retry_rebuilds_branch(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, app_config, ledger, git):
        provider = scripted_provider(
            *_writes_hello(make_tool_turn),
            make_tool_turn(("write_file", {"path": "other.txt", "content": "other\n"})),
            make_tool_turn(("done", {"title": "Add other file", "summary": "Added other.txt"})),
        )
        pipeline = make_pipeline(provider)
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.EXECUTE_LOCAL)
        request = pipeline.submit("app", "Add a file")
        pipeline.execute(project, request)

        prepared = pipeline.retry(request.id, force=True)
        result = pipeline.execute(project, prepared, force=True)

        assert result.success
        workspace = app_config.paths.workspace_for("app")
        assert (workspace / "other.txt").exists()
        assert not (workspace / "hello.txt").exists()
        assert len(ledger.get_request(request.id).attempts) == 2


class TestPullRequests:
    """Tests for the draft_pr and full autonomy levels."""

    def test_draft_pr(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger, git):
        hosting = _hosting()
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)), hosting)
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")

        result = pipeline.execute(project, request)

        assert result.success
        assert result.pr_url == PR_URL
        stored = ledger.get_request(request.id)
        assert stored.status == RequestStatus.APPLIED
        assert stored.pr_url == PR_URL
        assert hosting.open_or_reuse.call_args.kwargs["draft"] is True
        assert hosting.open_or_reuse.call_args.kwargs["title"] == "REQ-0001: Add hello file"
        hosting.enable_auto_merge.assert_not_called()
        assert "motiv/REQ-0001" in git(origin_repo, "branch", "--list")

    def test_full_autonomy_merges(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo):
        hosting = _hosting()
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)), hosting)
        project = pipeline.register_project("app", str(origin_repo), autonomy=Autonomy.FULL)
        request = pipeline.submit("app", "Add hello")

        pipeline.execute(project, request)

        assert hosting.open_or_reuse.call_args.kwargs["draft"] is False
        hosting.enable_auto_merge.assert_called_once_with(str(origin_repo), 7)

    def test_amend_pushes_to_existing_pr(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger, git):
        hosting = _hosting()
        provider = scripted_provider(
            *_writes_hello(make_tool_turn),
            make_tool_turn(("write_file", {"path": "more.txt", "content": "more\n"})),
            make_tool_turn(("done", {"title": "Add more", "summary": "Added more.txt"})),
        )
        pipeline = make_pipeline(provider, hosting)
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")
        pipeline.execute(project, request)

        amended = pipeline.amend(request.id, "Also add more.txt")
        assert amended.status == RequestStatus.EXECUTING
        result = pipeline.execute(project, amended)

        assert result.success
        assert hosting.open_or_reuse.call_count == 1
        stored = ledger.get_request(request.id)
        assert stored.status == RequestStatus.APPLIED
        assert stored.pr_url == PR_URL
        assert [a.spec_version for a in stored.attempts] == [1, 2]
        log = git(origin_repo, "log", "--format=%s", "motiv/REQ-0001")
        assert "REQ-0001: Add more" in log
        assert "REQ-0001: Add hello file" in log

        amend_prompt = provider.requests[2]["messages"][0]["content"]
        assert "Prior work on this branch" in amend_prompt

    def test_missing_github_token_fails_before_agent(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger):
        provider = scripted_provider(*_writes_hello(make_tool_turn))
        pipeline = make_pipeline(provider)
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")

        result = pipeline.execute(project, request)

        stored = ledger.get_request(request.id)
        assert not result.success
        assert provider.requests == []
        assert len(stored.attempts) == 1
        assert stored.attempts[0].status.value == "failed"
        assert "GITHUB_TOKEN" in stored.attempts[0].reason
        assert stored.status == RequestStatus.FAILED

    def test_pull_request_failure_records_one_failed_attempt(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger):
        hosting = _hosting()
        hosting.open_or_reuse.side_effect = HostingError("GitHub API error (422): Validation Failed", status_code=422)
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)), hosting)
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")

        result = pipeline.execute(project, request)

        stored = ledger.get_request(request.id)
        assert not result.success
        assert len(stored.attempts) == 1
        attempt = stored.attempts[0]
        assert attempt.status.value == "failed"
        assert attempt.commit == result.commit
        assert attempt.reason.startswith("Publishing failed: GitHub API error (422)")
        assert stored.status == RequestStatus.FAILED
        assert stored.pr_url is None

        transitions = [
            (e.from_status, e.to_status)
            for e in ledger.read_logs(request.id)
            if e.event == LedgerEvent.STATUS_CHANGED
        ]
        assert transitions == [(RequestStatus.INGESTED, RequestStatus.EXECUTING)]

    def test_applied_history(self, make_pipeline, scripted_provider, make_tool_turn, origin_repo, ledger):
        pipeline = make_pipeline(scripted_provider(*_writes_hello(make_tool_turn)), _hosting())
        project = pipeline.register_project("app", str(origin_repo))
        request = pipeline.submit("app", "Add hello")

        pipeline.execute(project, request)

        assert ledger.history(3) == [
            f"REQ-0001: applied - PR {PR_URL}",
            "REQ-0001: attempt 1 succeeded",
            "REQ-0001: ingested -> executing",
        ]


class TestDashboardOrder:
    """Tests for dashboard sorting."""

    def test_active_work_first(self, lifecycle):
        lifecycle.create_request("app", "one")
        lifecycle.create_request("app", "two")
        lifecycle.begin_execution("REQ-0002")
        requests = dashboard_order(lifecycle.ledger.list_requests())
        assert [r.id for r in requests] == ["REQ-0002", "REQ-0001"]
