"""Tests for the request staleness gate."""

from bqui.core.gate import AsyncRequestGate, key_matches
from bqui.core.messages import RequestKind, SelectionKey

A = SelectionKey("proj", "ds", "table_a")
B = SelectionKey("proj", "ds", "table_b")


class TestIssue:
    """Tests for AsyncRequestGate.issue."""

    def test_issue_tracks_request(self) -> None:
        """Test an issued request is outstanding and remembered."""
        gate, pending = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        assert pending is not None
        assert pending.issued_against == A
        assert gate.is_outstanding(RequestKind.SCHEMA, A)
        assert gate.already_issued(RequestKind.SCHEMA, A)

    def test_duplicate_outstanding_request_is_not_issued(self) -> None:
        """Test issuing the same key twice while outstanding yields one request."""
        gate, first = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        gate2, second = gate.issue(RequestKind.SCHEMA, A, A)
        assert first is not None
        assert second is None
        assert gate2 == gate
        assert len(gate2.outstanding) == 1

    def test_returning_to_outstanding_key_marks_it_issued(self) -> None:
        """Test moving back onto a key still in flight makes it the last issued again."""
        gate, _ = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        gate, _ = gate.issue(RequestKind.SCHEMA, B, B)
        assert not gate.already_issued(RequestKind.SCHEMA, A)
        gate, again = gate.issue(RequestKind.SCHEMA, A, A)
        assert again is None
        assert gate.already_issued(RequestKind.SCHEMA, A)
        assert len(gate.outstanding) == 2

    def test_queries_are_never_deduplicated(self) -> None:
        """Test every query run is issued."""
        gate, first = AsyncRequestGate().issue(RequestKind.QUERY, A, A, query="SELECT 1")
        gate, second = gate.issue(RequestKind.QUERY, A, A, query="SELECT 1")
        assert first is not None and second is not None
        assert first.request_id != second.request_id


class TestAccept:
    """Tests for AsyncRequestGate.accept."""

    def test_accepts_matching_selection(self) -> None:
        """Test a reply for the current table is accepted."""
        gate, pending = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        gate, accepted = gate.accept(pending, A)
        assert accepted
        assert not gate.outstanding

    def test_rejects_after_selection_changed(self) -> None:
        """Test a reply for table A is dropped once B is current."""
        gate, pending_a = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        gate, pending_b = gate.issue(RequestKind.SCHEMA, B, B)
        gate, accepted_a = gate.accept(pending_a, B)
        gate, accepted_b = gate.accept(pending_b, B)
        assert not accepted_a
        assert accepted_b

    def test_reply_is_consumed_once(self) -> None:
        """Test delivering the same reply twice only counts once."""
        gate, pending = AsyncRequestGate().issue(RequestKind.PREVIEW, A, A)
        gate, first = gate.accept(pending, A)
        gate, second = gate.accept(pending, A)
        assert first
        assert not second

    def test_only_latest_query_is_accepted(self) -> None:
        """Test an older query reply loses to a newer one."""
        gate, old = AsyncRequestGate().issue(RequestKind.QUERY, A, A, query="SELECT 1")
        gate, new = gate.issue(RequestKind.QUERY, A, A, query="SELECT 2")
        gate, old_accepted = gate.accept(old, A)
        gate, new_accepted = gate.accept(new, A)
        assert not old_accepted
        assert new_accepted

    def test_granularity(self) -> None:
        """Test each kind compares only the parts of the key it depends on."""
        current = SelectionKey("proj", "other_ds", "t")
        assert key_matches(RequestKind.PROJECTS, SelectionKey("elsewhere"), current)
        assert key_matches(RequestKind.DATASETS, SelectionKey("proj"), current)
        assert not key_matches(RequestKind.DATASETS, SelectionKey("old"), current)
        assert not key_matches(RequestKind.TABLES, SelectionKey("proj", "ds"), current)
        assert key_matches(RequestKind.TABLES, SelectionKey("proj", "other_ds"), current)
        assert not key_matches(RequestKind.SCHEMA, SelectionKey("proj", "other_ds", "u"), current)


class TestFail:
    """Tests for AsyncRequestGate.fail."""

    def test_failure_allows_retry(self) -> None:
        """Test a failed key is forgotten so the same navigation refetches."""
        gate, pending = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        gate, current = gate.fail(pending, A)
        assert current
        assert not gate.already_issued(RequestKind.SCHEMA, A)
        gate, again = gate.issue(RequestKind.SCHEMA, A, A)
        assert again is not None

    def test_stale_failure_is_not_current(self) -> None:
        """Test a failure for an old selection is reported as stale."""
        gate, pending = AsyncRequestGate().issue(RequestKind.SCHEMA, A, A)
        _, current = gate.fail(pending, B)
        assert not current
