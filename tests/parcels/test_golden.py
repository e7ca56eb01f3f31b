"""
Golden parcel regression tests.
"""
import pytest

from src.parcels.golden import (
    ALL_GOLDEN_CASES,
    MANATEE_GOLDEN_CASES,
    SARASOTA_GOLDEN_CASES,
    GoldenExpectation,
    run_golden_case,
    validate_golden_case,
)


class TestGoldenCases:
    """Every golden fixture must normalize to its expectation."""

    @pytest.mark.parametrize("case", ALL_GOLDEN_CASES, ids=lambda c: c.id)
    def test_case_passes(self, case):
        """Test a golden case end to end."""
        result = run_golden_case(case)

        assert result.failures == []
        assert result.passed is True

    def test_case_lists(self):
        """Test that cases are grouped by county source."""
        assert {c.source_key for c in MANATEE_GOLDEN_CASES} == {"fl-manatee-pa"}
        assert {c.source_key for c in SARASOTA_GOLDEN_CASES} == {"fl-sarasota-pa"}
        assert len(ALL_GOLDEN_CASES) == len(MANATEE_GOLDEN_CASES) + len(SARASOTA_GOLDEN_CASES)
        assert len({c.id for c in ALL_GOLDEN_CASES}) == len(ALL_GOLDEN_CASES)

    def test_sarasota_condo_values(self):
        """Test the normalized condo record beyond its expectation."""
        case = next(c for c in SARASOTA_GOLDEN_CASES if c.id == "sarasota-condo-1")

        normalized = run_golden_case(case).normalized

        assert normalized.county_fips == "115"
        assert normalized.provenance["parcel_id"].timestamp == "2024-06-01T00:00:00+00:00"


class TestValidateGoldenCase:
    """Tests for mismatch reporting."""

    @pytest.fixture
    def normalized(self):
        return run_golden_case(MANATEE_GOLDEN_CASES[0]).normalized

    def test_field_mismatch(self, normalized):
        """Test that a differing field is reported with both values."""
        expected = GoldenExpectation(parcel_id_norm="999", normalized_full_address=normalized.situs_address.normalized_full)

        passed, failures = validate_golden_case(normalized, expected)

        assert passed is False
        assert failures == ["parcel_id_norm: expected '999', got '123456789'"]

    def test_missing_assessment_year(self, normalized):
        """Test that missing tax years are listed."""
        expected = GoldenExpectation(
            parcel_id_norm="123456789",
            normalized_full_address=normalized.situs_address.normalized_full,
            assessment_years=[2024, 1999],
        )

        passed, failures = validate_golden_case(normalized, expected)

        assert failures == ["assessment_years: missing [1999]"]

    def test_sale_count_and_confidence(self, normalized):
        """Test sale count and confidence floor checks."""
        expected = GoldenExpectation(
            parcel_id_norm="123456789",
            normalized_full_address=normalized.situs_address.normalized_full,
            sale_count=5,
            confidence_min=1.5,
        )

        passed, failures = validate_golden_case(normalized, expected)

        assert len(failures) == 2
        assert failures[0].startswith("sale_count: expected 5")
        assert failures[1].startswith("confidence: expected >= 1.5")

    def test_unset_fields_not_checked(self, normalized):
        """Test that None expectations are skipped."""
        expected = GoldenExpectation(
            parcel_id_norm="123456789",
            normalized_full_address=normalized.situs_address.normalized_full,
        )

        assert validate_golden_case(normalized, expected) == (True, [])
