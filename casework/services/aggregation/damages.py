"""Damages calculation from medical bills and wage documentation."""

import re
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from casework.core.exceptions import AggregationError
from casework.schemas.aggregation import (
    AggregationDiagnostic,
    DamageLineItem,
    DamagesCalculation,
    WageLossPeriod,
)
from casework.schemas.case import DocumentSnapshot
from casework.schemas.enums import DocumentCategory
from casework.utils.dates import money, parse_date, to_decimal
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

MEDICAL = "medical"
LOST_WAGES = "lost_wages"
OTHER = "other"

_NON_WORD = re.compile(r"[^a-z0-9]+")


def normalize_provider(name: str) -> str:
    return _NON_WORD.sub(" ", name.lower()).strip()


def _mapping(value: Any, label: str, document: DocumentSnapshot) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise AggregationError(f"'{label}' of document {document.id} is not an object")
    return value


def _entries(value: Any, label: str, document: DocumentSnapshot) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise AggregationError(f"'{label}' of document {document.id} is not a list of objects")
    return value


def _name(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class _Collected:
    def __init__(self):
        self.items: List[Tuple[DamageLineItem, Decimal]] = []
        self.periods: List[WageLossPeriod] = []
        self.skipped: List[str] = []


def _line_item(
    kind: str,
    amount: Any,
    provider: str,
    item_date: Any,
    description: Any,
    document: DocumentSnapshot,
    collected: _Collected,
    label: str,
) -> None:
    value = to_decimal(amount)
    if value is None:
        collected.skipped.append(f"{label} without a readable amount was skipped")
        return
    collected.items.append((
        DamageLineItem(
            kind=kind,
            provider=provider,
            date=parse_date(item_date),
            amount=money(value),
            description=description if isinstance(description, str) else "",
            document_id=document.id,
        ),
        value,
    ))


def _collect_medical_bills(document: DocumentSnapshot, data: Dict[str, Any], collected: _Collected) -> None:
    provider = _name(data.get("provider")) or document.provider_name or "Unknown provider"
    charges = _entries(data.get("charges"), "charges", document)

    for charge in charges:
        amount = charge.get("amountBilled", charge.get("amount"))
        _line_item(
            MEDICAL, amount, _name(charge.get("provider")) or provider,
            charge.get("dateOfService", charge.get("date")), charge.get("description"),
            document, collected, "A charge",
        )

    if not charges:
        # Statement without itemized charges
        total = _mapping(data.get("summary"), "summary", document).get("totalBilled")
        if total is not None:
            _line_item(
                MEDICAL, total, provider, document.document_date, "Total billed",
                document, collected, "The billed total",
            )

    for expense in _entries(data.get("otherExpenses"), "otherExpenses", document):
        _line_item(
            OTHER, expense.get("amount"), _name(expense.get("provider")) or provider,
            expense.get("date"), expense.get("description"),
            document, collected, "An expense",
        )


def _collect_wages(document: DocumentSnapshot, data: Dict[str, Any], collected: _Collected) -> None:
    employer = _name(data.get("employer")) or document.provider_name or "Unknown employer"
    wage_loss = _mapping(data.get("wageLoss"), "wageLoss", document)
    missed = _mapping(data.get("missedWork"), "missedWork", document)

    if wage_loss.get("totalWageLoss") is not None:
        _line_item(
            LOST_WAGES, wage_loss["totalWageLoss"], employer, missed.get("startDate"),
            wage_loss.get("calculationMethod") or "Lost wages",
            document, collected, "The wage loss total",
        )
    elif data.get("totalWageLoss") is not None:
        _line_item(
            LOST_WAGES, data["totalWageLoss"], employer, missed.get("startDate"), "Lost wages",
            document, collected, "The wage loss total",
        )
    else:
        for entry in _entries(data.get("lineItems"), "lineItems", document):
            _line_item(
                LOST_WAGES, entry.get("amount"), employer, entry.get("date"), entry.get("description"),
                document, collected, "A wage line item",
            )

    if missed:
        days = missed.get("totalDaysMissed")
        collected.periods.append(
            WageLossPeriod(
                start_date=parse_date(missed.get("startDate")),
                end_date=parse_date(missed.get("returnDate")),
                days_missed=int(days) if isinstance(days, (int, float)) and not isinstance(days, bool) else None,
                document_id=document.id,
            )
        )


_COLLECTORS = {
    DocumentCategory.MEDICAL_BILLS: _collect_medical_bills,
    DocumentCategory.WAGE_DOCUMENTATION: _collect_wages,
}


def _dedupe_key(item: DamageLineItem, amount: Decimal) -> Tuple[str, str, Optional[date], Decimal]:
    return (item.kind, normalize_provider(item.provider), item.date, amount.normalize())


def calculate_damages(
    documents: List[DocumentSnapshot],
) -> Tuple[DamagesCalculation, List[AggregationDiagnostic]]:
    """Sum damages line items from bills and wage documentation.

    Line items with identical kind, provider, date and amount in different
    documents are counted once; a key is kept as many times as it appears
    in any single document.

    Args:
        documents: COMPLETED snapshots, oldest first

    Returns:
        Tuple of (damages calculation, diagnostics for skipped input)
    """
    diagnostics: List[AggregationDiagnostic] = []
    kept_counts: Counter = Counter()
    kept: List[Tuple[DamageLineItem, Decimal]] = []
    periods: List[WageLossPeriod] = []
    seen = 0

    for document in documents:
        collector = _COLLECTORS.get(document.category)
        if collector is None or document.extracted_data is None:
            continue

        collected = _Collected()
        try:
            if not isinstance(document.extracted_data, dict):
                raise AggregationError(f"extracted data of document {document.id} is not an object")
            collector(document, document.extracted_data, collected)
        except AggregationError as e:
            diagnostics.append(
                AggregationDiagnostic(document_id=document.id, section="damages_calculation", message=e.message)
            )
            continue

        for message in collected.skipped:
            diagnostics.append(
                AggregationDiagnostic(document_id=document.id, section="damages_calculation", message=message)
            )

        local_counts: Counter = Counter()
        for item, amount in collected.items:
            seen += 1
            key = _dedupe_key(item, amount)
            local_counts[key] += 1
            if local_counts[key] > kept_counts[key]:
                kept_counts[key] += 1
                kept.append((item, amount))
        periods.extend(collected.periods)

    totals = {MEDICAL: Decimal("0"), LOST_WAGES: Decimal("0"), OTHER: Decimal("0")}
    for item, amount in kept:
        totals[item.kind] += amount

    duplicates = seen - len(kept)
    if duplicates:
        LOGGER.info(f"Dropped {duplicates} duplicate damages line items")

    return (
        DamagesCalculation(
            medical_expenses=money(totals[MEDICAL]),
            lost_wages=money(totals[LOST_WAGES]),
            other=money(totals[OTHER]),
            total=money(sum(totals.values(), Decimal("0"))),
            line_items=[item for item, _ in kept],
            duplicates_removed=duplicates,
            wage_loss_periods=periods,
        ),
        diagnostics,
    )
