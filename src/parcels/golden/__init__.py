"""
Golden Package

Normalization regression cases per source.
"""
from src.parcels.golden.cases import (
    ALL_GOLDEN_CASES,
    MANATEE_GOLDEN_CASES,
    SARASOTA_GOLDEN_CASES,
    GoldenExpectation,
    GoldenParcelCase,
    run_golden_case,
    validate_golden_case,
)

__all__ = [
    "ALL_GOLDEN_CASES",
    "MANATEE_GOLDEN_CASES",
    "SARASOTA_GOLDEN_CASES",
    "GoldenExpectation",
    "GoldenParcelCase",
    "run_golden_case",
    "validate_golden_case",
]
