"""
Request pipeline.

Ties the ledger, the request lifecycle, the workspace, the agent loop and
the pull-request host together. ``execute`` follows the autonomy level:

    execute_local  prepare workspace, run agent, commit, run tests
    draft_pr       ... then push and open a draft pull request
    full           ... then open a ready pull request and merge it

Every failure during execution ends as a failed attempt in the ledger.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ProjectExistsError, ProjectNotFoundError
from .hosting import GitHubClient, build_pr_body
from .ledger import LedgerStore
from .lifecycle import RequestLifecycle, brief
from .models import (
    AppConfig,
    AttemptStatus,
    Autonomy,
    Credentials,
    Project,
    Request,
    RequestStatus,
)
from .orchestration import AgentLoop
from .providers import ProviderAdapter, RetryTransport, create_provider
from .tools import ToolExecutor
from .tracing import TracingClient, TracingContext
from .workspace import GitWorkspace

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 500
NO_CHANGES_REASON = "Agent reported success but no files were changed"


@dataclass
class ExecutionResult:
    """Final state of one execution, for display."""

    request: Request
    success: bool
    message: str
    commit: Optional[str] = None
    pr_url: Optional[str] = None


class RequestPipeline:
    """
    Runs requests from submission to an applied pull request.

    Args:
        config: Application configuration
        credentials: Credential values read at startup
        ledger: Ledger store (defaults to the configured ledger path)
        provider: Model backend adapter (defaults to the configured backend)
        hosting: Pull-request client (built from the GitHub token on first use)
        tracing_client: Optional Langfuse client
    """

    def __init__(
        self,
        config: AppConfig,
        credentials: Credentials,
        ledger: Optional[LedgerStore] = None,
        provider: Optional[ProviderAdapter] = None,
        hosting: Optional[GitHubClient] = None,
        tracing_client: Optional[TracingClient] = None,
    ):
        self.config = config
        self.credentials = credentials
        self.ledger = ledger or LedgerStore(config.paths.ledger)
        self.lifecycle = RequestLifecycle(
            self.ledger, max_failed_attempts=config.requests.max_failed_attempts
        )
        self.transport = RetryTransport.from_config(config.retry)
        self._provider = provider
        self._hosting = hosting
        self.tracing_client = tracing_client or TracingClient.disabled()

    @property
    def provider(self) -> ProviderAdapter:
        if self._provider is None:
            self._provider = create_provider(self.config.provider, self.transport)
        return self._provider

    @property
    def hosting(self) -> GitHubClient:
        """
        Raises:
            CredentialError: If the GitHub token is not configured
        """
        if self._hosting is None:
            github = self.config.github
            self._hosting = GitHubClient(
                token=self.credentials.resolve(github.credential_name),
                transport=self.transport,
                api_url=github.api_url,
                merge_method=github.merge_method,
            )
        return self._hosting

    def workspace_for(self, project: Project) -> GitWorkspace:
        return GitWorkspace(self.config.paths.workspace_for(project.name))

    # =========================================================================
    # Ledger operations
    # =========================================================================

    def get_project(self, name: str) -> Project:
        """
        Raises:
            ProjectNotFoundError: If no project has that name
        """
        project = self.ledger.read_project(name)
        if project is None:
            raise ProjectNotFoundError(name)
        return project

    def register_project(
        self,
        name: str,
        repo: str,
        default_branch: str = "main",
        autonomy: Optional[Autonomy] = None,
    ) -> Project:
        """
        Register a project and commit it to the ledger.

        Raises:
            ProjectExistsError: If the name is taken
        """
        self.ledger.require_initialized()
        if self.ledger.read_project(name) is not None:
            raise ProjectExistsError(name)
        project = Project(
            name=name,
            repo=repo,
            default_branch=default_branch or "main",
            autonomy=autonomy or self.config.default_autonomy,
        )
        self.ledger.write_project(project)
        self.ledger.commit(f"Register project: {name}")
        logger.info(f"Registered project {name} ({repo})")
        return project

    def resolve_autonomy(self, project: Project, override: Optional[str] = None) -> Autonomy:
        """The override when given, otherwise the project's level."""
        if override:
            return Autonomy.parse(override)
        return project.autonomy

    def submit(self, project_name: str, description: str, source: str = "cli") -> Request:
        """
        Ingest a new request for a registered project.

        Raises:
            ProjectNotFoundError: If the project is not registered
        """
        self.ledger.require_initialized()
        self.get_project(project_name)
        return self.lifecycle.create_request(project_name, description, source=source)

    def amend(self, request_id: str, description: str) -> Request:
        """Append a follow-up spec to a succeeded or applied request."""
        self.ledger.require_initialized()
        request = self.ledger.get_request(request_id)
        self.get_project(request.project)
        return self.lifecycle.amend_request(request_id, description)

    def retry(self, request_id: str, force: bool = False) -> Request:
        """Check retry eligibility and prepare the request for another attempt."""
        self.ledger.require_initialized()
        request = self.ledger.get_request(request_id)
        self.get_project(request.project)
        return self.lifecycle.prepare_retry(request_id, force=force)

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(
        self,
        project: Project,
        request: Request,
        autonomy: Optional[Autonomy] = None,
        force: bool = False,
    ) -> ExecutionResult:
        """
        Execute the current spec of a request at the given autonomy level.

        Args:
            project: Project the request targets
            request: Request to execute
            autonomy: Autonomy level (defaults to the project's)
            force: Rebuild the branch from the default branch and force push

        Returns:
            ExecutionResult with the request as stored after execution

        Raises:
            LedgerCorruptionError: If the ledger fails verification
        """
        autonomy = autonomy or project.autonomy
        self.ledger.verify()

        if autonomy == Autonomy.INGEST_ONLY:
            return ExecutionResult(
                request=request,
                success=True,
                message=f'Autonomy is "{autonomy.value}", execution skipped',
            )

        label = f" (amend v{len(request.spec)})" if request.is_amendment else ""
        logger.info(f"Executing {request.id}{label}{' (force rebuild)' if force else ''}")

        tracing = TracingContext(
            execution_id=request.id,
            client=self.tracing_client,
            session_id=request.id,
        )
        tracing.start_trace(
            name="request_execution",
            input={"description": request.current_spec.description},
            metadata={
                "project": project.name,
                "autonomy": autonomy.value,
                "spec_version": request.current_spec.version,
            },
        )

        self.lifecycle.begin_execution(request.id, f"Execution started ({autonomy.value})")
        try:
            result = self._execute(project, request, autonomy, force, tracing)
        except Exception as e:
            logger.error(f"Execution error for {request.id}: {e}")
            if self.ledger.get_request(request.id).status != RequestStatus.EXECUTING:
                # Attempt already recorded; mark_applied failed
                tracing.end_trace(output={"error": str(e)}, status="error")
                raise
            updated = self.lifecycle.record_attempt(
                request.id, AttemptStatus.FAILED, reason=str(e)[:MAX_REASON_LENGTH]
            )
            result = ExecutionResult(request=updated, success=False, message=str(e))

        tracing.end_trace(
            output={"message": result.message, "status": result.request.status.value},
            status="success" if result.success else "error",
        )
        return result

    def _execute(
        self,
        project: Project,
        request: Request,
        autonomy: Autonomy,
        force: bool,
        tracing: TracingContext,
    ) -> ExecutionResult:
        opens_pr = autonomy in (Autonomy.DRAFT_PR, Autonomy.FULL)
        if opens_pr:
            # Fails on a missing token before any model call
            hosting = self.hosting

        workspace = self.workspace_for(project)
        self._prepare_workspace(workspace, project, request, force)

        credential = self.credentials.get(self.config.provider.credential_name)
        if self.provider.requires_credential:
            credential = self.credentials.resolve(self.config.provider.credential_name)

        executor = ToolExecutor(
            workspace.path,
            command_timeout=self.config.agent.command_timeout,
            max_output_chars=self.config.agent.max_output_chars,
        )
        loop = AgentLoop(
            self.provider,
            executor,
            credential=credential,
            max_turns=self.config.agent.max_turns,
            execution_id=request.id,
            tracing_context=tracing,
        )
        outcome = loop.run(project, request)

        if not outcome.success:
            return self._fail(request, outcome.error or "Agent failed")

        title = outcome.title or brief(request.current_spec.description)
        if not workspace.commit_all(f"{request.id}: {title}"):
            return self._fail(request, NO_CHANGES_REASON)
        commit = workspace.current_commit()
        logger.info(f"Committed {commit} on {request.branch}")

        test_command = workspace.test_command()
        if test_command:
            logger.info(f"Running tests: {test_command}")
            test_result = workspace.run_command(
                test_command, timeout=self.config.agent.command_timeout
            )
            if not test_result.ok:
                output = test_result.stderr or test_result.stdout
                return self._fail(request, f"Tests failed: {output}", commit=commit)
            logger.info("Tests passed")

        if not opens_pr:
            updated = self.lifecycle.record_attempt(
                request.id, AttemptStatus.SUCCEEDED, commit=commit, summary=outcome.summary
            )
            return ExecutionResult(
                request=updated,
                success=True,
                message=f"Changes committed locally on {request.branch}",
                commit=commit,
            )

        try:
            workspace.push_branch(request.branch, force=force)
            logger.info(f"Pushed {request.branch}{' (forced)' if force else ''}")

            if request.is_amendment and request.pr_url:
                pr_url = request.pr_url
                message = f"Pushed to existing PR: {pr_url}"
            else:
                draft = autonomy != Autonomy.FULL
                pr = hosting.open_or_reuse(
                    project,
                    request,
                    title=f"{request.id}: {title}",
                    body=build_pr_body(request, outcome.summary),
                    draft=draft,
                )
                if autonomy == Autonomy.FULL:
                    hosting.enable_auto_merge(project.repo, pr.number)
                pr_url = pr.html_url
                message = f"{'Draft PR' if draft else 'PR'}: {pr_url}"
        except Exception as e:
            return self._fail(request, f"Publishing failed: {e}", commit=commit)

        self.lifecycle.record_attempt(
            request.id, AttemptStatus.SUCCEEDED, commit=commit, summary=outcome.summary
        )
        updated = self.lifecycle.mark_applied(request.id, pr_url)
        return ExecutionResult(
            request=updated, success=True, message=message, commit=commit, pr_url=pr_url
        )

    def _prepare_workspace(
        self,
        workspace: GitWorkspace,
        project: Project,
        request: Request,
        force: bool,
    ) -> None:
        if request.is_amendment and not force:
            logger.info(f"Checking out existing branch {request.branch}")
            workspace.ensure_for_amend(project.repo, request.branch)
            return

        logger.info(f"Preparing workspace {workspace.path}")
        workspace.ensure(project.repo, project.default_branch)
        if force:
            workspace.delete_branch(request.branch)
        workspace.checkout_branch(request.branch, create=True)

    def _fail(self, request: Request, reason: str, commit: Optional[str] = None) -> ExecutionResult:
        reason = reason[:MAX_REASON_LENGTH]
        logger.warning(f"{request.id} attempt failed: {reason}")
        updated = self.lifecycle.record_attempt(
            request.id, AttemptStatus.FAILED, commit=commit, reason=reason
        )
        return ExecutionResult(request=updated, success=False, message=reason, commit=commit)


STATUS_ORDER: dict[RequestStatus, int] = {
    RequestStatus.EXECUTING: 0,
    RequestStatus.RETRYING: 1,
    RequestStatus.INGESTED: 2,
    RequestStatus.FAILED: 3,
    RequestStatus.NEEDS_HUMAN: 4,
    RequestStatus.SUCCEEDED: 5,
    RequestStatus.APPLIED: 6,
}


def dashboard_order(requests: list[Request]) -> list[Request]:
    """Requests sorted by status, active work first."""
    return sorted(requests, key=lambda r: STATUS_ORDER.get(r.status, len(STATUS_ORDER)))
