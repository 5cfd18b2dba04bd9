"""Attorney warning rules."""

from casework.services.warnings.engine import CaseRecord, RuleThresholds, WarningRuleEngine

__all__ = ["CaseRecord", "RuleThresholds", "WarningRuleEngine"]
