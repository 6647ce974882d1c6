"""
Request state machine.

Every status change is checked against the transition table, written to
the request document, recorded as a log entry and committed to the ledger
as one unit.

    ingested    -> executing
    executing   -> succeeded | failed
    succeeded   -> applied | executing
    failed      -> retrying | needs_human
    retrying    -> executing
    needs_human -> executing
    applied     -> executing

Recording an attempt is only legal while ``executing``; its target status
(succeeded, failed or needs_human) follows from the attempt outcome.
Amending sets ``executing`` directly from succeeded or applied.
"""

import logging
from typing import Optional

from .errors import IneligibleRequestError, InvalidTransitionError
from .ledger import LedgerStore
from .models import (
    APP_NAME_LOWER,
    Attempt,
    AttemptStatus,
    LedgerEvent,
    LogEntry,
    Origin,
    Request,
    RequestStatus,
    Spec,
)
from .models.ledger import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_FAILED_ATTEMPTS = 2
BRIEF_LENGTH = 72

VALID_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.INGESTED: frozenset({RequestStatus.EXECUTING}),
    RequestStatus.EXECUTING: frozenset({RequestStatus.SUCCEEDED, RequestStatus.FAILED}),
    RequestStatus.SUCCEEDED: frozenset({RequestStatus.APPLIED, RequestStatus.EXECUTING}),
    RequestStatus.FAILED: frozenset({RequestStatus.RETRYING, RequestStatus.NEEDS_HUMAN}),
    RequestStatus.RETRYING: frozenset({RequestStatus.EXECUTING}),
    RequestStatus.NEEDS_HUMAN: frozenset({RequestStatus.EXECUTING}),
    RequestStatus.APPLIED: frozenset({RequestStatus.EXECUTING}),
}

AMENDABLE_STATUSES = frozenset({RequestStatus.SUCCEEDED, RequestStatus.APPLIED})
RETRYABLE_STATUSES = frozenset({RequestStatus.FAILED, RequestStatus.NEEDS_HUMAN})


def brief(text: str, max_len: int = BRIEF_LENGTH) -> str:
    """First line of ``text``, shortened with an ellipsis to ``max_len``."""
    lines = text.strip().split("\n")
    first_line = lines[0] if lines else ""
    if len(first_line) <= max_len:
        return first_line
    return first_line[: max_len - 3] + "..."


def is_valid_transition(source: RequestStatus, target: RequestStatus) -> bool:
    return target in VALID_TRANSITIONS.get(source, frozenset())


def validate_transition(
    source: RequestStatus,
    target: RequestStatus,
    request_id: Optional[str] = None,
) -> None:
    """
    Raises:
        InvalidTransitionError: If the table does not allow source -> target
    """
    if not is_valid_transition(source, target):
        raise InvalidTransitionError(source.value, target.value, request_id)


def can_amend(request: Request) -> bool:
    """Only succeeded or applied requests take follow-up work on their branch."""
    return request.status in AMENDABLE_STATUSES


def can_retry(request: Request, force: bool = False) -> bool:
    """Failed and escalated requests can be retried; forced retry allows any idle status."""
    if force:
        return request.status != RequestStatus.EXECUTING
    return request.status in RETRYABLE_STATUSES


def failed_attempt_count(request: Request) -> int:
    return request.failed_attempt_count


class RequestLifecycle:
    """
    Applies lifecycle operations to requests stored in a ledger.

    Args:
        ledger: Ledger the requests live in
        max_failed_attempts: Failed attempts after which a request is
            escalated to needs_human
    """

    def __init__(
        self,
        ledger: LedgerStore,
        max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS,
    ):
        self.ledger = ledger
        self.max_failed_attempts = max_failed_attempts

    def _save(self, request: Request, entry: LogEntry, commit_message: str) -> Request:
        self.ledger.write_request(request)
        self.ledger.write_log(request.id, entry)
        self.ledger.commit(commit_message)
        return request

    def create_request(
        self,
        project_name: str,
        description: str,
        source: str = "cli",
    ) -> Request:
        """Create and persist a new request in the ``ingested`` state."""
        request_id = self.ledger.next_request_id()
        now = utcnow()
        request = Request(
            id=request_id,
            description=description,
            project=project_name,
            branch=f"{APP_NAME_LOWER}/{request_id}",
            origin=Origin(source=source, timestamp=now),
            spec=[Spec(version=1, timestamp=now, description=description)],
            attempts=[],
            status=RequestStatus.INGESTED,
            created_at=now,
            updated_at=now,
        )

        summary = brief(description)
        logger.info(f"Created request {request_id} for project {project_name}")
        return self._save(
            request,
            LogEntry(
                timestamp=now,
                event=LedgerEvent.CREATED,
                message=f"Request created from {source}: {summary}",
            ),
            f"Ingest request {request_id}: {summary}",
        )

    def transition(
        self,
        request_id: str,
        target: RequestStatus,
        message: Optional[str] = None,
    ) -> Request:
        """
        Move a request to ``target``.

        Raises:
            RequestNotFoundError: If the request does not exist
            InvalidTransitionError: If the move is not in the transition table
        """
        request = self.ledger.get_request(request_id)
        source = request.status
        validate_transition(source, target, request_id)

        now = utcnow()
        request.status = target
        request.updated_at = now
        logger.info(f"{request_id}: {source.value} -> {target.value}")
        return self._save(
            request,
            LogEntry(
                timestamp=now,
                event=LedgerEvent.STATUS_CHANGED,
                from_status=source,
                to_status=target,
                message=message or f"Status changed to {target.value}",
            ),
            f"{request_id}: {source.value} -> {target.value}",
        )

    def begin_execution(self, request_id: str, message: Optional[str] = None) -> Request:
        """
        Bring a request to ``executing`` through legal transitions.

        A request that is already executing (after an amend) is returned
        unchanged; a failed request passes through ``retrying``.
        """
        request = self.ledger.get_request(request_id)
        if request.status == RequestStatus.EXECUTING:
            return request
        if request.status == RequestStatus.FAILED:
            self.transition(request_id, RequestStatus.RETRYING, "Retrying after failed attempt")
        return self.transition(request_id, RequestStatus.EXECUTING, message)

    def record_attempt(
        self,
        request_id: str,
        status: AttemptStatus,
        commit: Optional[str] = None,
        reason: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Request:
        """
        Append an attempt against the current spec and derive the new status.

        A success sets ``succeeded``. A failure sets ``failed``, or
        ``needs_human`` once the failed-attempt count reaches the maximum.

        Raises:
            InvalidTransitionError: If the request is not executing
        """
        request = self.ledger.get_request(request_id)
        if status == AttemptStatus.SUCCEEDED:
            target = RequestStatus.SUCCEEDED
        elif failed_attempt_count(request) + 1 >= self.max_failed_attempts:
            target = RequestStatus.NEEDS_HUMAN
        else:
            target = RequestStatus.FAILED
        if request.status != RequestStatus.EXECUTING:
            raise InvalidTransitionError(request.status.value, target.value, request_id)

        now = utcnow()
        attempt = Attempt(
            id=len(request.attempts) + 1,
            spec_version=request.current_spec.version,
            timestamp=now,
            status=status,
            commit=commit or None,
            reason=reason or None,
            summary=summary or None,
        )
        request.attempts.append(attempt)
        request.updated_at = now
        request.status = target

        if status == AttemptStatus.SUCCEEDED:
            log_message = f"Attempt {attempt.id} succeeded" + (f": {summary}" if summary else "")
            event = LedgerEvent.ATTEMPT_SUCCEEDED
        else:
            if target == RequestStatus.NEEDS_HUMAN:
                logger.warning(
                    f"{request_id}: {failed_attempt_count(request)} failed attempts, needs human"
                )
            log_message = f"Attempt {attempt.id} failed: {reason or 'unknown'}"
            event = LedgerEvent.ATTEMPT_FAILED

        commit_message = f"{request_id}: attempt {attempt.id} {status.value}"
        if reason:
            commit_message += f" - {brief(reason)}"
        return self._save(
            request,
            LogEntry(timestamp=now, event=event, message=log_message, attempt_id=attempt.id),
            commit_message,
        )

    def mark_applied(self, request_id: str, pr_url: str) -> Request:
        """Record the opened pull request and move to ``applied``."""
        request = self.ledger.get_request(request_id)
        source = request.status
        validate_transition(source, RequestStatus.APPLIED, request_id)

        now = utcnow()
        request.status = RequestStatus.APPLIED
        request.updated_at = now
        request.pr_url = pr_url
        return self._save(
            request,
            LogEntry(
                timestamp=now,
                event=LedgerEvent.APPLIED,
                from_status=source,
                to_status=RequestStatus.APPLIED,
                message=f"PR opened: {pr_url}",
            ),
            f"{request_id}: applied - PR {pr_url}",
        )

    def amend_request(self, request_id: str, description: str) -> Request:
        """
        Append a new spec revision and set the request to ``executing``.

        The id and branch are reused so later pushes update the same PR.

        Raises:
            IneligibleRequestError: If the request is not succeeded or applied
        """
        request = self.ledger.get_request(request_id)
        if not can_amend(request):
            raise IneligibleRequestError(
                f'Request {request_id} is in status "{request.status.value}" and cannot be '
                f"amended. Only succeeded or applied requests can be amended."
            )

        now = utcnow()
        version = len(request.spec) + 1
        request.spec.append(Spec(version=version, timestamp=now, description=description))
        source = request.status
        request.status = RequestStatus.EXECUTING
        request.updated_at = now

        summary = brief(description)
        return self._save(
            request,
            LogEntry(
                timestamp=now,
                event=LedgerEvent.AMENDED,
                from_status=source,
                to_status=RequestStatus.EXECUTING,
                message=f"Amended with spec v{version}: {summary}",
            ),
            f"Amend {request_id} (v{version}): {summary}",
        )

    def prepare_retry(self, request_id: str, force: bool = False) -> Request:
        """
        Check retry eligibility and move a failed request to ``retrying``.

        Raises:
            IneligibleRequestError: If the request's status does not allow a retry
        """
        request = self.ledger.get_request(request_id)
        if not can_retry(request, force=force):
            if force:
                detail = "is currently executing"
            else:
                detail = (
                    f'is in status "{request.status.value}". Only failed or needs_human '
                    f"requests can be retried (use --force to override)"
                )
            raise IneligibleRequestError(f"Request {request_id} {detail}.")

        if request.status == RequestStatus.FAILED:
            label = "Forced retry" if force else "Retry"
            return self.transition(request_id, RequestStatus.RETRYING, f"{label} requested")
        return request

