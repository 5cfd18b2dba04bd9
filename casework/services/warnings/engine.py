"""Warning rule engine.

Rules are independent callables taking a CaseRecord and returning an
AttorneyWarning or None. Each rule is registered with a fixed severity and
category; the engine orders warnings critical -> moderate -> minor, keeping
declaration order within a tier.
"""

from datetime import date
from functools import wraps
from typing import Callable, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from casework.core.config import settings
from casework.schemas.aggregation import AggregationResult
from casework.schemas.case import CaseIntake
from casework.schemas.enums import DocumentCategory, WarningCategory, WarningSeverity
from casework.schemas.warnings import AttorneyWarning
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class RuleThresholds(BaseModel):
    """Day counts used by the rules."""
    model_config = ConfigDict(frozen=True)

    treatment_gap_days: int = Field(default_factory=lambda: settings.treatment_gap_threshold_days)
    initial_treatment_delay_days: int = Field(default_factory=lambda: settings.initial_treatment_delay_days)
    statute_warning_days: int = Field(default_factory=lambda: settings.statute_warning_days)
    default_statute_years: int = Field(default_factory=lambda: settings.default_statute_years)


class CaseRecord(BaseModel):
    """Everything a rule may look at.

    as_of is the evaluation date; it is an input so that evaluating the same
    record twice gives the same warnings.
    """
    model_config = ConfigDict(frozen=True)

    intake: CaseIntake
    aggregation: AggregationResult
    as_of: date
    thresholds: RuleThresholds = Field(default_factory=RuleThresholds)

    def has_category(self, category: DocumentCategory) -> bool:
        return category in self.aggregation.completed_categories


# A rule body returns (message, recommendation) when it fires
RuleBody = Callable[[CaseRecord], Optional[Tuple[str, str]]]


class WarningRule:
    """A rule body bound to its name, severity and category."""

    def __init__(
        self,
        name: str,
        severity: WarningSeverity,
        category: WarningCategory,
        body: RuleBody,
    ):
        self.name = name
        self.severity = severity
        self.category = category
        self.body = body

    def __call__(self, record: CaseRecord) -> Optional[AttorneyWarning]:
        finding = self.body(record)
        if finding is None:
            return None
        message, recommendation = finding
        return AttorneyWarning(
            severity=self.severity,
            category=self.category,
            message=message,
            recommendation=recommendation,
            rule=self.name,
        )

    def __repr__(self) -> str:
        return f"WarningRule({self.name!r}, {self.severity.value})"


def rule(name: str, severity: WarningSeverity, category: WarningCategory):
    """Decorator turning a rule body into a WarningRule."""
    def decorator(body: RuleBody) -> WarningRule:
        return wraps(body)(WarningRule(name, severity, category, body))
    return decorator


class WarningRuleEngine:
    """Evaluates a set of rules against a case record."""

    def __init__(self, rules: Optional[Iterable[WarningRule]] = None):
        if rules is None:
            from casework.services.warnings.rules import DEFAULT_RULES
            rules = DEFAULT_RULES
        self.rules: List[WarningRule] = list(rules)

    def register(self, warning_rule: WarningRule) -> WarningRule:
        self.rules.append(warning_rule)
        return warning_rule

    def evaluate(self, record: CaseRecord) -> List[AttorneyWarning]:
        """Run every rule and return the warnings in severity order.

        A rule that raises is logged and skipped; the others still run.

        Args:
            record: The case record to evaluate

        Returns:
            Warnings ordered critical, moderate, minor
        """
        warnings: List[AttorneyWarning] = []
        for warning_rule in self.rules:
            try:
                warning = warning_rule(record)
            except Exception:
                LOGGER.error(
                    f"Warning rule {warning_rule.name} failed",
                    exc_info=True,
                    extra={"rule": warning_rule.name}
                )
                continue
            if warning is not None:
                warnings.append(warning)

        # sorted() is stable, so declaration order holds within a severity
        return sorted(warnings, key=lambda w: w.severity.rank)
