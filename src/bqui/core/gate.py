"""Staleness gate for asynchronous catalog fetches.

Every fetch is issued through the gate and every reply passes back through
it. A reply is accepted only if it still matches the selection that is
current when it arrives; anything else is dropped without touching state.
There is no cancellation: superseded fetches run to completion and are
discarded here.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from .messages import PendingRequest, RequestKind, SelectionKey

# Kinds where only the most recently issued request counts
LATEST_WINS = frozenset({RequestKind.QUERY, RequestKind.SWITCH_PROJECT})


def key_matches(kind: RequestKind, key: SelectionKey, current: SelectionKey) -> bool:
    """Compare ``key`` to ``current`` at the granularity of ``kind``."""
    if kind == RequestKind.PROJECTS:
        return True
    if key.project_id != current.project_id:
        return kind == RequestKind.SWITCH_PROJECT
    if kind in (RequestKind.DATASETS, RequestKind.QUERY, RequestKind.SWITCH_PROJECT):
        return True
    if kind == RequestKind.TABLES:
        return key.dataset_id == current.dataset_id
    return key.dataset_id == current.dataset_id and key.table_id == current.table_id


@dataclass(frozen=True)
class AsyncRequestGate:
    """Outstanding requests plus the last key issued for each kind."""

    serial: int = 0
    outstanding: Tuple[PendingRequest, ...] = ()
    last_issued: Dict[RequestKind, SelectionKey] = field(default_factory=dict)
    latest: Dict[RequestKind, int] = field(default_factory=dict)

    def issue(
        self,
        kind: RequestKind,
        key: SelectionKey,
        current: SelectionKey,
        query: Optional[str] = None,
    ) -> Tuple["AsyncRequestGate", Optional[PendingRequest]]:
        """Register a new fetch.

        Returns the new gate and the request to dispatch, or None when an
        identical request is still outstanding. The key is recorded as the last
        one issued either way, so a later delivery for it is shown.
        """
        if kind not in LATEST_WINS and self.is_outstanding(kind, key):
            return replace(self, last_issued={**self.last_issued, kind: key}), None
        serial = self.serial + 1
        pending = PendingRequest(
            kind=kind,
            key=key,
            issued_against=current,
            request_id=serial,
            query=query,
        )
        gate = replace(
            self,
            serial=serial,
            outstanding=self.outstanding + (pending,),
            last_issued={**self.last_issued, kind: key},
            latest={**self.latest, kind: serial},
        )
        return gate, pending

    def is_outstanding(self, kind: RequestKind, key: SelectionKey) -> bool:
        return any(p.kind == kind and p.key == key for p in self.outstanding)

    def already_issued(self, kind: RequestKind, key: SelectionKey) -> bool:
        """True when the last fetch of ``kind`` was for ``key``."""
        return self.last_issued.get(kind) == key

    def is_current(self, pending: PendingRequest, current: SelectionKey) -> bool:
        """Would ``pending`` be accepted against ``current``?"""
        if pending.kind in LATEST_WINS and self.latest.get(pending.kind) != pending.request_id:
            return False
        return key_matches(pending.kind, pending.key, current)

    def accept(
        self, pending: PendingRequest, current: SelectionKey
    ) -> Tuple["AsyncRequestGate", bool]:
        """Consume a successful reply.

        ``current`` is read at delivery time. A reply that was already
        consumed, or that no longer matches, is rejected.
        """
        if not self._owns(pending):
            return self, False
        return self._consume(pending), self.is_current(pending, current)

    def fail(
        self, pending: PendingRequest, current: SelectionKey
    ) -> Tuple["AsyncRequestGate", bool]:
        """Consume a failed reply.

        The last issued key for the kind is forgotten so the same navigation
        can retry. Returns whether the failure concerns the current selection.
        """
        if not self._owns(pending):
            return self, False
        gate = self._consume(pending)
        if gate.last_issued.get(pending.kind) == pending.key:
            gate = gate.forget(pending.kind)
        return gate, self.is_current(pending, current)

    def forget(self, *kinds: RequestKind) -> "AsyncRequestGate":
        """Drop the hover de-duplication memory for ``kinds``."""
        last_issued = {k: v for k, v in self.last_issued.items() if k not in kinds}
        return replace(self, last_issued=last_issued)

    def _owns(self, pending: PendingRequest) -> bool:
        return any(p.request_id == pending.request_id for p in self.outstanding)

    def _consume(self, pending: PendingRequest) -> "AsyncRequestGate":
        outstanding = tuple(
            p for p in self.outstanding if p.request_id != pending.request_id
        )
        return replace(self, outstanding=outstanding)
