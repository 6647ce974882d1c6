"""Tests for the request state machine."""

import shutil
from itertools import product

import pytest

from motiv.errors import IneligibleRequestError, InvalidTransitionError, RequestNotFoundError
from motiv.lifecycle import (
    VALID_TRANSITIONS,
    brief,
    can_amend,
    can_retry,
    is_valid_transition,
    validate_transition,
)
from motiv.models import AttemptStatus, LedgerEvent, RequestStatus

S = RequestStatus

ALLOWED = {
    (S.INGESTED, S.EXECUTING),
    (S.EXECUTING, S.SUCCEEDED),
    (S.EXECUTING, S.FAILED),
    (S.SUCCEEDED, S.APPLIED),
    (S.SUCCEEDED, S.EXECUTING),
    (S.FAILED, S.RETRYING),
    (S.FAILED, S.NEEDS_HUMAN),
    (S.RETRYING, S.EXECUTING),
    (S.NEEDS_HUMAN, S.EXECUTING),
    (S.APPLIED, S.EXECUTING),
}

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class TestTransitionTable:
    """Tests for the transition table itself."""

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(RequestStatus)

    @pytest.mark.parametrize("source, target", list(product(RequestStatus, RequestStatus)))
    def test_table_is_exhaustive(self, source, target):
        """Exactly the listed pairs are accepted."""
        assert is_valid_transition(source, target) == ((source, target) in ALLOWED)

    def test_validate_transition_raises_with_details(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(S.INGESTED, S.APPLIED, "REQ-0001")
        assert exc_info.value.source == "ingested"
        assert exc_info.value.target == "applied"
        assert "REQ-0001" in str(exc_info.value)


class TestBrief:
    """Tests for commit-message summaries."""

    def test_short_first_line_unchanged(self):
        assert brief("Add a health endpoint\nwith details") == "Add a health endpoint"

    def test_long_line_shortened(self):
        result = brief("x" * 100)
        assert len(result) == 72
        assert result.endswith("...")


def _drive_to(lifecycle, status: RequestStatus) -> None:
    """Create REQ-0001 and move it to ``status`` through legal operations."""
    lifecycle.create_request("app", "desc")
    if status == S.INGESTED:
        return
    lifecycle.begin_execution("REQ-0001")
    if status in (S.SUCCEEDED, S.APPLIED):
        lifecycle.record_attempt("REQ-0001", AttemptStatus.SUCCEEDED, commit="abc")
        if status == S.APPLIED:
            lifecycle.mark_applied("REQ-0001", "https://github.com/acme/app/pull/1")
        return
    lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="first")
    if status == S.RETRYING:
        lifecycle.prepare_retry("REQ-0001")
    elif status == S.NEEDS_HUMAN:
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="second")


@requires_git
class TestRequestLifecycle:
    """Tests for lifecycle operations against a real ledger."""

    def test_create_request(self, lifecycle, ledger):
        request = lifecycle.create_request("app", "Add a health endpoint")
        assert request.id == "REQ-0001"
        assert request.status == S.INGESTED
        assert request.branch == "motiv/REQ-0001"
        assert request.spec[0].version == 1
        assert request.attempts == []

        stored = ledger.get_request("REQ-0001")
        assert stored.description == "Add a health endpoint"
        assert ledger.read_logs("REQ-0001")[0].event == LedgerEvent.CREATED
        assert ledger.history(1) == ["Ingest request REQ-0001: Add a health endpoint"]

    def test_ids_increase(self, lifecycle):
        first = lifecycle.create_request("app", "one")
        second = lifecycle.create_request("app", "two")
        assert (first.id, second.id) == ("REQ-0001", "REQ-0002")

    def test_transition_records_log_and_commit(self, lifecycle, ledger):
        lifecycle.create_request("app", "desc")
        lifecycle.transition("REQ-0001", S.EXECUTING)

        log = ledger.read_logs("REQ-0001")[-1]
        assert log.event == LedgerEvent.STATUS_CHANGED
        assert log.from_status == S.INGESTED
        assert log.to_status == S.EXECUTING
        assert ledger.history(1) == ["REQ-0001: ingested -> executing"]

    def test_invalid_transition_leaves_request_unchanged(self, lifecycle, ledger):
        lifecycle.create_request("app", "desc")
        with pytest.raises(InvalidTransitionError):
            lifecycle.transition("REQ-0001", S.APPLIED)
        assert ledger.get_request("REQ-0001").status == S.INGESTED
        assert len(ledger.read_logs("REQ-0001")) == 1

    def test_transition_unknown_request(self, lifecycle):
        with pytest.raises(RequestNotFoundError):
            lifecycle.transition("REQ-0042", S.EXECUTING)

    def test_successful_attempt(self, lifecycle):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        request = lifecycle.record_attempt(
            "REQ-0001", AttemptStatus.SUCCEEDED, commit="abc1234", summary="Did it"
        )
        assert request.status == S.SUCCEEDED
        assert request.attempts[0].id == 1
        assert request.attempts[0].spec_version == 1
        assert request.attempts[0].commit == "abc1234"

    def test_escalates_after_two_failures(self, lifecycle, ledger):
        """First failure -> failed; second failure -> needs_human."""
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        first = lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="boom")
        assert first.status == S.FAILED

        lifecycle.begin_execution("REQ-0001")
        second = lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="boom again")
        assert second.status == S.NEEDS_HUMAN
        assert [a.id for a in second.attempts] == [1, 2]
        assert ledger.history(1) == ["REQ-0001: attempt 2 failed - boom again"]

    def test_begin_execution_from_failed_passes_through_retrying(self, lifecycle, ledger):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="boom")

        request = lifecycle.begin_execution("REQ-0001")
        assert request.status == S.EXECUTING
        transitions = [
            (e.from_status, e.to_status)
            for e in ledger.read_logs("REQ-0001")
            if e.event == LedgerEvent.STATUS_CHANGED
        ]
        assert transitions[-2:] == [(S.FAILED, S.RETRYING), (S.RETRYING, S.EXECUTING)]

    def test_mark_applied(self, lifecycle):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.SUCCEEDED, commit="abc")
        request = lifecycle.mark_applied("REQ-0001", "https://github.com/acme/app/pull/1")
        assert request.status == S.APPLIED
        assert request.pr_url == "https://github.com/acme/app/pull/1"

    def test_mark_applied_requires_success(self, lifecycle):
        lifecycle.create_request("app", "desc")
        with pytest.raises(InvalidTransitionError):
            lifecycle.mark_applied("REQ-0001", "https://example.com/pr/1")

    def test_amend_appends_spec_and_keeps_branch(self, lifecycle, ledger):
        created = lifecycle.create_request("app", "v1 work")
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.SUCCEEDED, commit="abc")
        lifecycle.mark_applied("REQ-0001", "https://github.com/acme/app/pull/1")

        amended = lifecycle.amend_request("REQ-0001", "v2 work")
        assert amended.status == S.EXECUTING
        assert [s.version for s in amended.spec] == [1, 2]
        assert amended.id == created.id
        assert amended.branch == created.branch
        assert amended.pr_url == "https://github.com/acme/app/pull/1"

        stored = ledger.get_request("REQ-0001")
        assert stored.spec == amended.spec
        assert stored.spec[0] == created.spec[0]
        assert stored.status == S.EXECUTING
        assert ledger.history(1) == ["Amend REQ-0001 (v2): v2 work"]

    @pytest.mark.parametrize(
        "status", [S.INGESTED, S.SUCCEEDED, S.FAILED, S.RETRYING, S.NEEDS_HUMAN, S.APPLIED]
    )
    @pytest.mark.parametrize("outcome", [AttemptStatus.SUCCEEDED, AttemptStatus.FAILED])
    def test_record_attempt_requires_executing(self, lifecycle, ledger, status, outcome):
        _drive_to(lifecycle, status)
        before = ledger.get_request("REQ-0001")

        with pytest.raises(InvalidTransitionError, match=f"Invalid transition: {status.value} -> "):
            lifecycle.record_attempt("REQ-0001", outcome, commit="abc", reason="x")

        after = ledger.get_request("REQ-0001")
        assert after.status == status
        assert after.attempts == before.attempts

    @pytest.mark.parametrize("status", [S.INGESTED, S.FAILED])
    def test_amend_rejected_for_ineligible_status(self, lifecycle, ledger, status):
        lifecycle.create_request("app", "desc")
        if status == S.FAILED:
            lifecycle.begin_execution("REQ-0001")
            lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="x")
        with pytest.raises(IneligibleRequestError):
            lifecycle.amend_request("REQ-0001", "more")
        assert len(ledger.get_request("REQ-0001").spec) == 1

    def test_prepare_retry_moves_failed_to_retrying(self, lifecycle):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.FAILED, reason="x")
        assert lifecycle.prepare_retry("REQ-0001").status == S.RETRYING

    def test_prepare_retry_rejects_succeeded_without_force(self, lifecycle):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        lifecycle.record_attempt("REQ-0001", AttemptStatus.SUCCEEDED, commit="abc")
        with pytest.raises(IneligibleRequestError, match="--force"):
            lifecycle.prepare_retry("REQ-0001")
        assert lifecycle.prepare_retry("REQ-0001", force=True).status == S.SUCCEEDED

    def test_prepare_retry_rejects_executing_even_with_force(self, lifecycle):
        lifecycle.create_request("app", "desc")
        lifecycle.begin_execution("REQ-0001")
        with pytest.raises(IneligibleRequestError, match="executing"):
            lifecycle.prepare_retry("REQ-0001", force=True)


@requires_git
class TestEligibility:
    """Tests for amend and retry predicates."""

    def test_can_amend_and_retry(self, lifecycle):
        request = lifecycle.create_request("app", "desc")
        assert not can_amend(request)
        assert not can_retry(request)
        assert can_retry(request, force=True)
