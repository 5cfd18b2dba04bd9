"""Aggregation of completed documents into the case record."""

from casework.services.aggregation.aggregator import CaseAggregator, derived_case_fields

__all__ = ["CaseAggregator", "derived_case_fields"]
