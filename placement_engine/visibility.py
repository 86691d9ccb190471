"""Which internal postings a candidate may see.

Posting workflow (transitions are performed by the approval workflow, never here):

    pending  → approved | active | rejected
    approved → closed
    active   → closed
    rejected, closed: terminal

A candidate sees approved/active postings that are untenanted or belong to
their own tenant, plus pending postings of their own tenant. Poster trust
never affects visibility.
"""
from __future__ import annotations

from typing import Iterable, Protocol

from placement_engine.models import JobPosting, PostingStatus

TRANSITIONS: dict[PostingStatus, frozenset[PostingStatus]] = {
    PostingStatus.PENDING: frozenset({PostingStatus.APPROVED, PostingStatus.ACTIVE, PostingStatus.REJECTED}),
    PostingStatus.APPROVED: frozenset({PostingStatus.CLOSED}),
    PostingStatus.ACTIVE: frozenset({PostingStatus.CLOSED}),
    PostingStatus.REJECTED: frozenset(),
    PostingStatus.CLOSED: frozenset(),
}

PUBLISHED: frozenset[PostingStatus] = frozenset({PostingStatus.APPROVED, PostingStatus.ACTIVE})


class HasTenant(Protocol):
    tenant_id: str | None


def can_transition(current: PostingStatus, target: PostingStatus) -> bool:
    return target in TRANSITIONS[current]


def is_terminal(status: PostingStatus) -> bool:
    return not TRANSITIONS[status]


def visible(candidate: HasTenant, posting: JobPosting) -> bool:
    tenant = candidate.tenant_id
    if posting.status in PUBLISHED:
        return posting.tenant_id is None or posting.tenant_id == tenant
    if posting.status == PostingStatus.PENDING:
        return tenant is not None and posting.tenant_id == tenant
    return False


def filter_visible(candidate: HasTenant, postings: Iterable[JobPosting]) -> list[JobPosting]:
    """The only catalog filter; run it before anything is scored."""
    return [p for p in postings if visible(candidate, p)]
