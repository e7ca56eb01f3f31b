"""
Golden Parcel Cases

Known raw records with the normalized values they must produce. A change
to a normalizer that alters any of these outputs fails the golden run.
Fixtures live under ``tests/fixtures/golden/<county>/``.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from src.parcels.adapters.manatee import MANATEE_PAO_CONFIG
from src.parcels.adapters.sarasota import SARASOTA_PAO_CONFIG
from src.parcels.models.parcel import NormalizedParcel
from src.parcels.models.property_details import PropertyDetails
from src.parcels.models.source import SourceConfig
from src.parcels.normalizers.pao_normalizer import NormalizeMeta, PaoNormalizer
from src.parcels.utils.parcel_id import (
    extract_parcel_id_from_manatee_url,
    extract_parcel_id_from_sarasota_url,
)

GOLDEN_FIXTURES_DIR = Path(__file__).resolve().parents[3] / "tests" / "fixtures" / "golden"

# Fixed so golden outputs are reproducible
GOLDEN_TIMESTAMP = "2024-06-01T00:00:00+00:00"


@dataclass
class GoldenExpectation:
    parcel_id_norm: str
    normalized_full_address: str
    owner_name: Optional[str] = None
    year_built: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    living_area_sqft: Optional[float] = None
    assessment_years: Optional[List[int]] = None
    sale_count: Optional[int] = None
    confidence_min: Optional[float] = None


@dataclass
class GoldenParcelCase:
    id: str
    name: str
    source_key: str
    fixture_path: str
    expect: GoldenExpectation
    detail_url: Optional[str] = None


@dataclass
class GoldenCaseResult:
    case: GoldenParcelCase
    passed: bool
    failures: List[str] = field(default_factory=list)
    normalized: Optional[NormalizedParcel] = None


MANATEE_GOLDEN_CASES = [
    GoldenParcelCase(
        id="manatee-residential-1",
        name="Standard Residential Property",
        source_key=MANATEE_PAO_CONFIG.source_key,
        fixture_path="manatee/residential-1.json",
        detail_url="https://www.manateepao.gov/parcel/?parid=123456789",
        expect=GoldenExpectation(
            parcel_id_norm="123456789",
            normalized_full_address="123 MAIN ST, BRADENTON, FL, 34208",
            owner_name="SMITH JOHN & JANE",
            year_built=1985,
            bedrooms=3,
            bathrooms=2,
            living_area_sqft=1850,
            assessment_years=[2024, 2023, 2022, 2021, 2020],
            sale_count=2,
            confidence_min=0.8,
        ),
    ),
    GoldenParcelCase(
        id="manatee-condo-1",
        name="Condominium Unit",
        source_key=MANATEE_PAO_CONFIG.source_key,
        fixture_path="manatee/condo-1.json",
        detail_url="https://www.manateepao.gov/parcel/?parid=987654321",
        expect=GoldenExpectation(
            parcel_id_norm="987654321",
            normalized_full_address="456 BEACH DR UNIT 302, BRADENTON BEACH, FL, 34217",
            owner_name="DOE ROBERT",
            year_built=2005,
            bedrooms=2,
            bathrooms=2,
            living_area_sqft=1200,
            assessment_years=[2024, 2023],
            sale_count=1,
            confidence_min=0.7,
        ),
    ),
    GoldenParcelCase(
        id="manatee-vacant-1",
        name="Vacant Land",
        source_key=MANATEE_PAO_CONFIG.source_key,
        fixture_path="manatee/vacant-1.json",
        detail_url="https://www.manateepao.gov/parcel/?parid=555555555",
        expect=GoldenExpectation(
            parcel_id_norm="555555555",
            normalized_full_address="0 VACANT LOT RD, PALMETTO, FL, 34221",
            owner_name="LAND HOLDINGS LLC",
            assessment_years=[2024],
            sale_count=0,
            confidence_min=0.5,
        ),
    ),
]

SARASOTA_GOLDEN_CASES = [
    GoldenParcelCase(
        id="sarasota-condo-1",
        name="Condominium Unit (Long Common)",
        source_key=SARASOTA_PAO_CONFIG.source_key,
        fixture_path="sarasota/condo-1.json",
        detail_url="https://www.sc-pa.com/propertysearch/parcel/details/2043131013",
        expect=GoldenExpectation(
            parcel_id_norm="2043131013",
            normalized_full_address="5701 LONG COMMON CIR #13, SARASOTA, FL, 34235",
            owner_name="TEST OWNER NAME",
            year_built=1984,
            bedrooms=2,
            bathrooms=2,
            living_area_sqft=1090,
            assessment_years=[2024, 2023],
            sale_count=1,
            confidence_min=0.7,
        ),
    ),
    GoldenParcelCase(
        id="sarasota-residential-1",
        name="Standard Residential Property",
        source_key=SARASOTA_PAO_CONFIG.source_key,
        fixture_path="sarasota/residential-1.json",
        detail_url="https://www.sc-pa.com/propertysearch/parcel/details/1234567890",
        expect=GoldenExpectation(
            parcel_id_norm="1234567890",
            normalized_full_address="100 EXAMPLE BLVD, SARASOTA, FL, 34231",
            owner_name="JOHNSON MARY & DAVID",
            year_built=1998,
            bedrooms=4,
            bathrooms=3,
            living_area_sqft=2450,
            assessment_years=[2024, 2023, 2022],
            sale_count=2,
            confidence_min=0.8,
        ),
    ),
]

ALL_GOLDEN_CASES = MANATEE_GOLDEN_CASES + SARASOTA_GOLDEN_CASES

_SOURCES: Dict[str, Tuple[SourceConfig, object]] = {
    MANATEE_PAO_CONFIG.source_key: (MANATEE_PAO_CONFIG, extract_parcel_id_from_manatee_url),
    SARASOTA_PAO_CONFIG.source_key: (SARASOTA_PAO_CONFIG, extract_parcel_id_from_sarasota_url),
}


def normalizer_for(source_key: str) -> PaoNormalizer:
    config, url_parcel_id = _SOURCES[source_key]
    return PaoNormalizer(
        source_key=config.source_key,
        state_fips=config.state_fips,
        county_fips=config.county_fips,
        url_parcel_id=url_parcel_id,
    )


def load_fixture(case: GoldenParcelCase, fixtures_dir: Path = GOLDEN_FIXTURES_DIR) -> PropertyDetails:
    with (fixtures_dir / case.fixture_path).open("r", encoding="utf-8") as f:
        return PropertyDetails.model_validate(json.load(f))


def validate_golden_case(normalized: NormalizedParcel, expected: GoldenExpectation) -> Tuple[bool, List[str]]:
    """Compare a normalized parcel with its expectation. Returns ``(passed, failures)``."""
    failures = []

    def check(name: str, want, got) -> None:
        if want is not None and got != want:
            failures.append(f"{name}: expected {want!r}, got {got!r}")

    improvements = normalized.improvements

    check("parcel_id_norm", expected.parcel_id_norm, normalized.parcel_id_norm)
    check("normalized_full_address", expected.normalized_full_address, normalized.situs_address.normalized_full)
    check("owner_name", expected.owner_name, normalized.owner_name)
    check("year_built", expected.year_built, improvements.year_built if improvements else None)
    check("bedrooms", expected.bedrooms, improvements.bedrooms if improvements else None)
    check("bathrooms", expected.bathrooms, improvements.bathrooms if improvements else None)
    check("living_area_sqft", expected.living_area_sqft, improvements.living_area_sqft if improvements else None)

    if expected.assessment_years is not None:
        actual_years = {a.tax_year for a in normalized.assessments}
        missing = sorted(set(expected.assessment_years) - actual_years, reverse=True)
        if missing:
            failures.append(f"assessment_years: missing {missing}")

    if expected.sale_count is not None and len(normalized.sales) != expected.sale_count:
        failures.append(f"sale_count: expected {expected.sale_count}, got {len(normalized.sales)}")

    if expected.confidence_min is not None and normalized.confidence < expected.confidence_min:
        failures.append(f"confidence: expected >= {expected.confidence_min}, got {normalized.confidence}")

    return not failures, failures


def run_golden_case(case: GoldenParcelCase, fixtures_dir: Path = GOLDEN_FIXTURES_DIR) -> GoldenCaseResult:
    raw = load_fixture(case, fixtures_dir)
    normalized = normalizer_for(case.source_key).normalize(
        raw,
        NormalizeMeta(timestamp=GOLDEN_TIMESTAMP, source_url=case.detail_url),
    )
    passed, failures = validate_golden_case(normalized, case.expect)
    return GoldenCaseResult(case=case, passed=passed, failures=failures, normalized=normalized)
