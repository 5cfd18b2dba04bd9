"""Unit tests for document and case status transitions."""

import pytest

from casework.core.exceptions import InvalidTransitionError
from casework.schemas.enums import CaseStatus, ProcessingStatus
from casework.services.processing.transitions import (
    DOCUMENT_STAGE_ORDER,
    can_transition_case,
    can_transition_document,
    case_path,
    validate_case_transition,
    validate_document_transition,
)


class TestDocumentTransitions:
    """Document statuses only move forward."""

    def test_stage_order_is_allowed(self):
        for current, new in zip(DOCUMENT_STAGE_ORDER, DOCUMENT_STAGE_ORDER[1:]):
            assert can_transition_document(current, new)

    @pytest.mark.parametrize("status", [
        ProcessingStatus.PENDING,
        ProcessingStatus.EXTRACTING_TEXT,
        ProcessingStatus.CLASSIFYING,
        ProcessingStatus.EXTRACTING_DATA,
    ])
    def test_any_open_stage_can_fail(self, status):
        assert can_transition_document(status, ProcessingStatus.FAILED)

    def test_backwards_and_skipping_rejected(self):
        assert not can_transition_document(ProcessingStatus.CLASSIFYING, ProcessingStatus.EXTRACTING_TEXT)
        assert not can_transition_document(ProcessingStatus.PENDING, ProcessingStatus.COMPLETED)

    @pytest.mark.parametrize("terminal", [ProcessingStatus.COMPLETED, ProcessingStatus.FAILED])
    def test_terminal_statuses_are_final(self, terminal):
        for status in ProcessingStatus:
            assert not can_transition_document(terminal, status)

    def test_validate_raises_with_both_statuses(self):
        with pytest.raises(InvalidTransitionError, match="COMPLETED to PENDING"):
            validate_document_transition(ProcessingStatus.COMPLETED, ProcessingStatus.PENDING)


class TestCaseTransitions:
    """Case lifecycle."""

    def test_forward_progression(self):
        assert can_transition_case(CaseStatus.INTAKE, CaseStatus.DOCUMENTS_UPLOADED)
        assert can_transition_case(CaseStatus.PROCESSING, CaseStatus.EXTRACTION_COMPLETE)
        assert can_transition_case(CaseStatus.SENT, CaseStatus.LITIGATION)

    def test_backwards_rejected(self):
        assert not can_transition_case(CaseStatus.DRAFT_READY, CaseStatus.PROCESSING)
        with pytest.raises(InvalidTransitionError):
            validate_case_transition(CaseStatus.SETTLED, CaseStatus.SENT)

    def test_any_open_case_can_close(self):
        for status in CaseStatus:
            if status == CaseStatus.CLOSED:
                assert not can_transition_case(status, CaseStatus.CLOSED)
            else:
                assert can_transition_case(status, CaseStatus.CLOSED)

    def test_case_path_walks_intermediate_statuses(self):
        assert case_path(CaseStatus.DOCUMENTS_UPLOADED, CaseStatus.EXTRACTION_COMPLETE) == [
            CaseStatus.PROCESSING,
            CaseStatus.EXTRACTION_COMPLETE,
        ]

    def test_case_path_empty_when_at_or_past_target(self):
        assert case_path(CaseStatus.EXTRACTION_COMPLETE, CaseStatus.EXTRACTION_COMPLETE) == []
        assert case_path(CaseStatus.DRAFT_READY, CaseStatus.EXTRACTION_COMPLETE) == []
        assert case_path(CaseStatus.CLOSED, CaseStatus.EXTRACTION_COMPLETE) == []
