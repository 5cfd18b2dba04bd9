"""Deep merge of extracted data across a case's documents."""

from copy import deepcopy
from datetime import date
from typing import Any, Dict, Iterable, List, Tuple
from uuid import UUID

from casework.core.exceptions import AggregationError
from casework.schemas.aggregation import AggregationDiagnostic, FieldConflict
from casework.schemas.case import DocumentSnapshot
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


def document_order_key(document: DocumentSnapshot) -> Tuple:
    """Sort key putting documents oldest first.

    Undated documents come before dated ones; upload time and then id break
    ties so the order is total.
    """
    uploaded = document.uploaded_at.timestamp() if document.uploaded_at else 0.0
    return (
        document.document_date is not None,
        document.document_date or date.min,
        uploaded,
        str(document.id),
    )


def order_documents(documents: Iterable[DocumentSnapshot]) -> List[DocumentSnapshot]:
    return sorted(documents, key=document_order_key)


class _MergeState:
    def __init__(self):
        self.merged: Dict[str, Any] = {}
        self.owners: Dict[str, UUID] = {}
        self.conflicts: List[FieldConflict] = []

    def claim(self, path: str, value: Any, document_id: UUID) -> None:
        """Record document_id as the source of value and everything below it."""
        self.owners[path] = document_id
        if isinstance(value, dict):
            for key, child in value.items():
                self.claim(f"{path}.{key}", child, document_id)

    def merge_into(
        self, target: Dict[str, Any], source: Dict[str, Any], path: str, document_id: UUID
    ) -> None:
        for key, value in source.items():
            child_path = f"{path}.{key}"

            if value is None:
                continue

            if key not in target or target[key] is None:
                target[key] = deepcopy(value)
                self.claim(child_path, value, document_id)
                continue

            existing = target[key]
            if isinstance(existing, dict) and isinstance(value, dict):
                self.merge_into(existing, value, child_path, document_id)
            elif isinstance(existing, list) and isinstance(value, list):
                for item in value:
                    if item not in existing:
                        existing.append(deepcopy(item))
            elif existing != value:
                self.conflicts.append(
                    FieldConflict(
                        path=child_path,
                        value=deepcopy(existing),
                        document_id=self.owners.get(child_path, document_id),
                        winning_value=deepcopy(value),
                        superseded_by=document_id,
                    )
                )
                target[key] = deepcopy(value)
                self.claim(child_path, value, document_id)


def merge_extracted_data(
    documents: List[DocumentSnapshot],
) -> Tuple[Dict[str, Any], List[FieldConflict], List[AggregationDiagnostic]]:
    """Merge documents' extracted data into one mapping keyed category -> field.

    Documents are applied oldest first. Nested mappings merge recursively,
    lists are unioned in order, and a differing scalar is replaced by the
    later document's value with the losing value recorded as a conflict.

    Args:
        documents: COMPLETED document snapshots with a category

    Returns:
        Tuple of (merged data, conflicts, diagnostics for skipped documents)
    """
    state = _MergeState()
    diagnostics: List[AggregationDiagnostic] = []

    for document in order_documents(documents):
        try:
            data = _require_mapping(document)
        except AggregationError as e:
            diagnostics.append(
                AggregationDiagnostic(
                    document_id=document.id, section="extracted_data", message=e.message
                )
            )
            continue
        if not data:
            continue

        category = document.category.value
        target = state.merged.setdefault(category, {})
        state.merge_into(target, data, category, document.id)

    return state.merged, state.conflicts, diagnostics


def _require_mapping(document: DocumentSnapshot) -> Dict[str, Any]:
    data = document.extracted_data
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise AggregationError(
            f"extracted data of document {document.id} is a {type(data).__name__}, not an object"
        )
    return data
