"""Allowed status transitions for documents and cases.

Repositories validate every status write against these tables before the
compare-and-set UPDATE, so a status can never move backwards.
"""

from typing import Dict, FrozenSet

from casework.core.exceptions import InvalidTransitionError
from casework.schemas.enums import CaseStatus, ProcessingStatus

DOCUMENT_TRANSITIONS: Dict[ProcessingStatus, FrozenSet[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset(
        {ProcessingStatus.EXTRACTING_TEXT, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.EXTRACTING_TEXT: frozenset(
        {ProcessingStatus.CLASSIFYING, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.CLASSIFYING: frozenset(
        {ProcessingStatus.EXTRACTING_DATA, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.EXTRACTING_DATA: frozenset(
        {ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}
    ),
    ProcessingStatus.COMPLETED: frozenset(),
    ProcessingStatus.FAILED: frozenset(),
}

# Order in which a document passes through its stages
DOCUMENT_STAGE_ORDER = (
    ProcessingStatus.PENDING,
    ProcessingStatus.EXTRACTING_TEXT,
    ProcessingStatus.CLASSIFYING,
    ProcessingStatus.EXTRACTING_DATA,
    ProcessingStatus.COMPLETED,
)

CASE_TRANSITIONS: Dict[CaseStatus, FrozenSet[CaseStatus]] = {
    CaseStatus.INTAKE: frozenset({CaseStatus.DOCUMENTS_UPLOADED}),
    CaseStatus.DOCUMENTS_UPLOADED: frozenset({CaseStatus.PROCESSING}),
    CaseStatus.PROCESSING: frozenset({CaseStatus.EXTRACTION_COMPLETE}),
    CaseStatus.EXTRACTION_COMPLETE: frozenset({CaseStatus.DRAFT_READY}),
    CaseStatus.DRAFT_READY: frozenset({CaseStatus.UNDER_REVIEW}),
    CaseStatus.UNDER_REVIEW: frozenset({CaseStatus.SENT}),
    CaseStatus.SENT: frozenset({CaseStatus.SETTLED, CaseStatus.LITIGATION}),
    CaseStatus.SETTLED: frozenset(),
    CaseStatus.LITIGATION: frozenset(),
    CaseStatus.CLOSED: frozenset(),
}

# Forward path from a fresh case to a finished extraction
CASE_PROGRESSION = (
    CaseStatus.INTAKE,
    CaseStatus.DOCUMENTS_UPLOADED,
    CaseStatus.PROCESSING,
    CaseStatus.EXTRACTION_COMPLETE,
    CaseStatus.DRAFT_READY,
    CaseStatus.UNDER_REVIEW,
    CaseStatus.SENT,
)


def can_transition_document(current: ProcessingStatus, new: ProcessingStatus) -> bool:
    return new in DOCUMENT_TRANSITIONS[ProcessingStatus(current)]


def can_transition_case(current: CaseStatus, new: CaseStatus) -> bool:
    current = CaseStatus(current)
    new = CaseStatus(new)
    # Any open case may be closed
    if new == CaseStatus.CLOSED:
        return current != CaseStatus.CLOSED
    return new in CASE_TRANSITIONS[current]


def validate_document_transition(current: ProcessingStatus, new: ProcessingStatus) -> None:
    """Raise InvalidTransitionError unless current -> new is allowed."""
    if not can_transition_document(current, new):
        raise InvalidTransitionError(
            f"Document status cannot move from {ProcessingStatus(current).value} "
            f"to {ProcessingStatus(new).value}"
        )


def validate_case_transition(current: CaseStatus, new: CaseStatus) -> None:
    """Raise InvalidTransitionError unless current -> new is allowed."""
    if not can_transition_case(current, new):
        raise InvalidTransitionError(
            f"Case status cannot move from {CaseStatus(current).value} "
            f"to {CaseStatus(new).value}"
        )


def case_path(current: CaseStatus, target: CaseStatus) -> list[CaseStatus]:
    """Statuses to pass through to reach target along the forward path.

    Returns an empty list when target is not ahead of current on the
    progression (including when the case already is at or past it).
    """
    current = CaseStatus(current)
    target = CaseStatus(target)
    if current not in CASE_PROGRESSION or target not in CASE_PROGRESSION:
        return []
    start = CASE_PROGRESSION.index(current)
    end = CASE_PROGRESSION.index(target)
    if end <= start:
        return []
    return list(CASE_PROGRESSION[start + 1:end + 1])
