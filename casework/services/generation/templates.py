"""Templates for generated case documents.

Each template binds the case record into a DocumentBody. Templates are
registered per GeneratedDocumentType and declare the context fields they
cannot do without.
"""

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from casework.core.exceptions import GenerationError
from casework.schemas.aggregation import DamagesCalculation, TreatmentTimeline
from casework.schemas.case import CaseIntake
from casework.schemas.enums import GeneratedDocumentType, Tone, WarningCategory, WarningSeverity
from casework.schemas.warnings import AttorneyWarning
from casework.services.generation.rendering import (
    BulletList,
    DocumentBody,
    Paragraph,
    Section,
    Table,
    format_money,
)

DEMAND_AMOUNT_PLACEHOLDER = "[DEMAND AMOUNT]"
DEFAULT_RESPONSE_DAYS = 30


@dataclass
class GenerationContext:
    """Case data available to a template."""
    case_id: UUID
    intake: CaseIntake
    tone: Tone
    as_of: date
    timeline: TreatmentTimeline = field(default_factory=TreatmentTimeline)
    damages: DamagesCalculation = field(default_factory=DamagesCalculation)
    warnings: List[AttorneyWarning] = field(default_factory=list)
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    completed_documents: int = 0
    parameters: Dict[str, Any] = field(default_factory=dict)

    def parameter(self, name: str, placeholder: str) -> str:
        value = self.parameters.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            return placeholder
        return str(value)


TONE_LANGUAGE: Dict[Tone, Tuple[str, str]] = {
    Tone.COOPERATIVE: (
        "We write on behalf of our client in the hope of reaching a fair resolution of this "
        "claim without the need for litigation.",
        "We look forward to working with you toward a prompt and amicable resolution.",
    ),
    Tone.MODERATE: (
        "This firm represents the claimant named below. We submit this demand for the injuries "
        "and losses our client suffered as a result of your insured's negligence.",
        "We trust you will give this demand careful consideration and respond in a timely manner.",
    ),
    Tone.AGGRESSIVE: (
        "This firm represents the claimant named below, who was seriously injured because of "
        "your insured's negligence. Liability is clear and the damages are well documented.",
        "Should this demand be rejected, we are prepared to pursue every remedy available to our client.",
    ),
    Tone.LITIGATION_READY: (
        "This firm represents the claimant named below. This letter is our final pre-suit demand "
        "before a complaint is filed.",
        "Absent acceptance within the time stated, we will file suit without further notice and "
        "seek all damages recoverable at trial, including costs.",
    ),
}


def _date(value: Optional[date], placeholder: str = "[DATE]") -> str:
    return value.strftime("%B %d, %Y") if value else placeholder


def _demand_amount(context: GenerationContext) -> str:
    value = context.parameters.get("demand_amount")
    if value is None or value == "":
        return DEMAND_AMOUNT_PLACEHOLDER
    try:
        return format_money(Decimal(str(value).replace("$", "").replace(",", "")))
    except InvalidOperation:
        return str(value)


def _damages_table(damages: DamagesCalculation) -> Table:
    return Table(
        headers=["Category", "Amount"],
        rows=[
            ["Medical Expenses", format_money(damages.medical_expenses)],
            ["Lost Wages", format_money(damages.lost_wages)],
            ["Other Expenses", format_money(damages.other)],
            ["Total Special Damages", format_money(damages.total)],
        ],
        emphasized_rows=[3],
    )


def _treatment_summary(timeline: TreatmentTimeline) -> Paragraph:
    if not timeline.events:
        return Paragraph("No dated medical treatment has been documented yet.")
    return Paragraph(
        f"Treatment began on {_date(timeline.first_treatment_date)} and continued through "
        f"{_date(timeline.last_treatment_date)}, spanning {timeline.treatment_duration_days} days "
        f"and {timeline.total_visits} visits."
    )


def _event_lines(timeline: TreatmentTimeline) -> List[str]:
    lines = []
    for event in timeline.events:
        line = f"{event.date.isoformat()}: {event.provider} ({event.event_type})"
        if event.description:
            line += f" - {event.description}"
        lines.append(line)
    return lines


def _mmi_paragraph(timeline: TreatmentTimeline) -> Paragraph:
    mmi = timeline.mmi
    if not mmi.reached:
        return Paragraph("Maximum medical improvement has not been documented.")
    text = f"Maximum medical improvement was documented on {_date(mmi.date)}."
    if mmi.notes:
        text += f" Provider notes: {mmi.notes}"
    return Paragraph(text)


def _treatment_overview(timeline: TreatmentTimeline) -> List[Any]:
    blocks: List[Any] = [_treatment_summary(timeline)]
    facts = []
    if timeline.providers:
        facts.append(f"Treating providers: {len(timeline.providers)}")
    if timeline.diagnoses:
        facts.append("Primary diagnoses: " + ", ".join(d.diagnosis for d in timeline.diagnoses[:3]))
    if timeline.body_parts:
        facts.append("Injured areas: " + ", ".join(p.body_part for p in timeline.body_parts))
    if timeline.pain_scores:
        first, last = timeline.pain_scores[0], timeline.pain_scores[-1]
        facts.append(
            f"Pain: {first.score:g}/10 on {_date(first.date)}, "
            f"{last.score:g}/10 on {_date(last.date)}"
        )
    if facts:
        blocks.append(BulletList(facts))
    if timeline.events:
        blocks.append(_mmi_paragraph(timeline))
    return blocks


def _chronology_sections(timeline: TreatmentTimeline) -> List[Section]:
    sections: List[Section] = []
    if timeline.providers:
        sections.append(Section("Providers", [Table(
            headers=["Provider", "Visits", "Billed"],
            rows=[[p.name, str(p.visit_count), format_money(p.total_cost)] for p in timeline.providers],
        )]))
    if timeline.diagnoses:
        sections.append(Section("Diagnoses", [Table(
            headers=["Diagnosis", "ICD-10", "First Recorded", "Last Recorded", "Mentions"],
            rows=[
                [d.diagnosis, d.icd_code or "", d.first_date.isoformat(), d.last_date.isoformat(),
                 str(d.mention_count)]
                for d in timeline.diagnoses
            ],
        )]))
    if timeline.body_parts:
        sections.append(Section("Injuries by Body Part", [BulletList([
            f"{p.body_part}: {', '.join(p.diagnoses)}"
            + (f" (treatment: {', '.join(p.treatments)})" if p.treatments else "")
            for p in timeline.body_parts
        ])]))
    if timeline.pain_scores:
        sections.append(Section("Pain Scores", [BulletList([
            f"{entry.date.isoformat()}: {entry.score:g}/10"
            + (f" ({entry.location})" if entry.location else "")
            for entry in timeline.pain_scores
        ])]))
    sections.append(Section("Maximum Medical Improvement", [_mmi_paragraph(timeline)]))
    return sections


def _warning_lines(warnings: List[AttorneyWarning]) -> List[str]:
    return [
        f"[{w.severity.value.upper()}] {w.message}. Recommendation: {w.recommendation}"
        for w in warnings
    ]


class DocumentTemplate(ABC):
    """Base class for document templates."""

    document_type: GeneratedDocumentType
    title: str
    allows_intake_only: bool = False
    # Dotted attribute paths on GenerationContext; None or empty counts as missing
    required_fields: Tuple[str, ...] = ()

    def missing_fields(self, context: GenerationContext) -> List[str]:
        missing = []
        for path in self.required_fields:
            value: Any = context
            for part in path.split("."):
                value = getattr(value, part, None)
            if value is None or value == "" or value == []:
                missing.append(path)
        return missing

    def render(self, context: GenerationContext) -> DocumentBody:
        """Check required fields and build the document body.

        Raises:
            GenerationError: If a required field is missing
        """
        missing = self.missing_fields(context)
        if missing:
            raise GenerationError(
                f"Cannot generate {self.document_type.value} for case {context.case_id}: "
                f"missing {', '.join(missing)}"
            )
        return self.build(context)

    @abstractmethod
    def build(self, context: GenerationContext) -> DocumentBody:
        ...


TEMPLATES: Dict[GeneratedDocumentType, Type[DocumentTemplate]] = {}


def register_template(template_cls: Type[DocumentTemplate]) -> Type[DocumentTemplate]:
    TEMPLATES[template_cls.document_type] = template_cls
    return template_cls


def get_template(document_type: GeneratedDocumentType) -> DocumentTemplate:
    try:
        return TEMPLATES[GeneratedDocumentType(document_type)]()
    except (KeyError, ValueError) as e:
        raise GenerationError(f"No template for document type {document_type}") from e


@register_template
class DemandLetterTemplate(DocumentTemplate):
    document_type = GeneratedDocumentType.DEMAND_LETTER
    title = "Settlement Demand"
    required_fields = ("intake.incident_date",)

    def build(self, context: GenerationContext) -> DocumentBody:
        intake = context.intake
        opening, closing = TONE_LANGUAGE[context.tone]
        response_days = context.parameters.get("response_days") or DEFAULT_RESPONSE_DAYS

        header = Section(None, [
            Paragraph(_date(context.as_of)),
            Paragraph("FOR SETTLEMENT PURPOSES ONLY", bold=True),
            BulletList([
                f"Insurance carrier: {intake.defendant_insurer or '[INSURANCE CARRIER]'}",
                f"Your insured: {intake.defendant_name or '[DEFENDANT NAME]'}",
                f"Our client: {intake.client_name}",
                f"Claim number: {intake.claim_number or '[CLAIM NUMBER]'}",
                f"Date of loss: {_date(intake.incident_date)}",
            ]),
        ])

        facts = [
            Paragraph(
                f"On {_date(intake.incident_date)}, {intake.client_name} was injured in an "
                f"incident at {intake.incident_location or '[INCIDENT LOCATION]'}."
            ),
            Paragraph(intake.incident_description or "[INCIDENT DESCRIPTION]"),
        ]

        treatment: List[Any] = [_treatment_summary(context.timeline)]
        if context.timeline.events:
            treatment.append(BulletList(_event_lines(context.timeline)))

        demand = Paragraph(
            f"To resolve this claim, our client demands {_demand_amount(context)}. "
            f"Please respond within {response_days} days of the date of this letter."
        )

        return DocumentBody(
            title=self.title,
            sections=[
                header,
                Section("Introduction", [Paragraph(opening)]),
                Section("Facts of the Incident", facts),
                Section("Injuries and Medical Treatment", treatment),
                Section("Damages", [_damages_table(context.damages)]),
                Section("Demand", [demand, Paragraph(closing)]),
                Section(None, [
                    Paragraph("Sincerely,"),
                    Paragraph(context.parameter("attorney_name", "[ATTORNEY NAME]")),
                    Paragraph(context.parameter("firm_name", "[FIRM NAME]")),
                ]),
            ],
        )


@register_template
class ExecutiveSummaryTemplate(DocumentTemplate):
    document_type = GeneratedDocumentType.EXECUTIVE_SUMMARY
    title = "Case Executive Summary"
    required_fields = ("intake.incident_date",)

    def build(self, context: GenerationContext) -> DocumentBody:
        intake = context.intake
        overview = BulletList([
            f"Client: {intake.client_name}",
            f"Incident: {intake.incident_type or '[INCIDENT TYPE]'} on {_date(intake.incident_date)}",
            f"Location: {intake.incident_location or '[INCIDENT LOCATION]'}",
            f"Defendant: {intake.defendant_name or '[DEFENDANT NAME]'}"
            f" ({intake.defendant_insurer or '[INSURANCE CARRIER]'})",
            f"Jurisdiction: {intake.jurisdiction or '[JURISDICTION]'}",
            f"Documents processed: {context.completed_documents}",
        ])

        counts = Counter(w.severity for w in context.warnings)
        risk_blocks: List[Any] = [
            Paragraph(
                f"{counts[WarningSeverity.CRITICAL]} critical, {counts[WarningSeverity.MODERATE]} "
                f"moderate and {counts[WarningSeverity.MINOR]} minor issues flagged."
            )
        ]
        if context.warnings:
            risk_blocks.append(BulletList(_warning_lines(context.warnings)))

        return DocumentBody(
            title=self.title,
            sections=[
                Section("Case Overview", [overview]),
                Section("Treatment", _treatment_overview(context.timeline)),
                Section("Special Damages", [_damages_table(context.damages)]),
                Section("Risk Assessment", risk_blocks),
            ],
        )


@register_template
class GapAnalysisTemplate(DocumentTemplate):
    document_type = GeneratedDocumentType.GAP_ANALYSIS
    title = "Case Gap Analysis"
    allows_intake_only = True

    def build(self, context: GenerationContext) -> DocumentBody:
        sections: List[Section] = []
        if context.completed_documents == 0:
            sections.append(Section("Status", [
                Paragraph("No documents have been processed for this case yet. The analysis "
                          "below is based on the intake information only.")
            ]))

        missing = [w for w in context.warnings if w.category == WarningCategory.MISSING_DOC]
        sections.append(Section("Missing Documentation", [
            BulletList([f"{w.message}. {w.recommendation}" for w in missing])
            if missing else Paragraph("No required documentation is missing.")
        ]))

        gaps = context.timeline.gaps
        if gaps:
            gap_block: Any = Table(
                headers=["From", "To", "Days", "Explanation"],
                rows=[
                    [g.start_date.isoformat(), g.end_date.isoformat(), str(g.duration_days),
                     g.reason or "Unexplained"]
                    for g in gaps
                ],
            )
        else:
            gap_block = Paragraph("No treatment gaps were found.")
        sections.append(Section("Treatment Gaps", [gap_block]))

        others = [w for w in context.warnings if w.category != WarningCategory.MISSING_DOC]
        sections.append(Section("Other Weaknesses", [
            BulletList(_warning_lines(others)) if others else Paragraph("No other issues flagged.")
        ]))

        return DocumentBody(title=self.title, sections=sections)


@register_template
class TreatmentTimelineTemplate(DocumentTemplate):
    document_type = GeneratedDocumentType.TREATMENT_TIMELINE
    title = "Medical Treatment Timeline"
    required_fields = ("timeline.events",)

    def build(self, context: GenerationContext) -> DocumentBody:
        timeline = context.timeline
        table = Table(
            headers=["Date", "Provider", "Type", "Description"],
            rows=[
                [e.date.isoformat(), e.provider, e.event_type, e.description]
                for e in timeline.events
            ],
        )
        sections = [
            Section("Summary", [_treatment_summary(timeline)]),
            Section("Chronology", [table]),
        ]
        sections.extend(_chronology_sections(timeline))
        if timeline.gaps:
            sections.append(Section("Gaps in Treatment", [BulletList([
                f"{g.start_date.isoformat()} to {g.end_date.isoformat()}: {g.duration_days} days"
                + (f" ({g.reason})" if g.reason else " (unexplained)")
                for g in timeline.gaps
            ])]))
        return DocumentBody(title=self.title, sections=sections)


@register_template
class DamagesWorksheetTemplate(DocumentTemplate):
    document_type = GeneratedDocumentType.DAMAGES_WORKSHEET
    title = "Damages Worksheet"

    def build(self, context: GenerationContext) -> DocumentBody:
        damages = context.damages
        kinds = {"medical": "Medical", "lost_wages": "Lost wages", "other": "Other"}
        items = Table(
            headers=["Date", "Provider", "Category", "Description", "Amount"],
            rows=[
                [item.date.isoformat() if item.date else "", item.provider,
                 kinds.get(item.kind, item.kind), item.description, format_money(item.amount)]
                for item in damages.line_items
            ],
        )

        sections = [
            Section("Itemized Special Damages", [
                items if damages.line_items else Paragraph("No billed items have been documented.")
            ]),
            Section("Totals", [_damages_table(damages)]),
        ]
        if damages.duplicates_removed:
            sections[0].blocks.append(Paragraph(
                f"{damages.duplicates_removed} duplicate line items found in more than one "
                f"document were counted once."
            ))
        if damages.wage_loss_periods:
            sections.append(Section("Time Away from Work", [BulletList([
                f"{_date(p.start_date, 'unknown start')} to {_date(p.end_date, 'not returned')}"
                + (f", {p.days_missed} days missed" if p.days_missed is not None else "")
                for p in damages.wage_loss_periods
            ])]))
        return DocumentBody(title=self.title, sections=sections)
