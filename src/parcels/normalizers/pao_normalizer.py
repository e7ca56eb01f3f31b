"""
PAO Normalizer

Maps a raw county ``PropertyDetails`` record onto the canonical
``NormalizedParcel``. Pure: the same input and meta always produce the same
output, so normalization can be replayed from stored parse artifacts.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from src.parcels.models.parcel import (
    NormalizedAddress,
    NormalizedAssessment,
    NormalizedImprovements,
    NormalizedLand,
    NormalizedParcel,
    NormalizedSale,
    ParcelProvenance,
)
from src.parcels.models.property_details import PropertyDetails, SaleRecord, ValuationRecord
from src.parcels.utils.dates import sort_by_date_desc
from src.parcels.utils.hashing import compute_sale_key_sha256
from src.parcels.utils.logger import get_logger
from src.parcels.utils.parcel_id import normalize_parcel_id

logger = get_logger(__name__)

# Per-group provenance confidence
PROVENANCE_CONFIDENCE = {
    "parcel_id": 1.0,
    "situs_address": 0.9,
    "owner_name": 0.9,
    "land": 0.8,
    "improvements": 0.8,
    "assessments": 0.9,
    "sales": 0.9,
}

# Completeness weights in hundredths; integer sums keep the score exact
CONFIDENCE_WEIGHTS = {
    "parcel_id": 20,
    "owner": 15,
    "address": 15,
    "valuations": 20,
    "sales": 15,
    "building": 10,
    "extras": 5,
}


@dataclass
class NormalizeMeta:
    """Acquisition context stamped onto every provenance entry."""

    timestamp: str
    method: str = "playwright"
    source_url: Optional[str] = None


def normalize_address(
    street: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
    default_state: str = "FL",
) -> NormalizedAddress:
    """
    >>> normalize_address("123 Main St", "Bradenton", "FL", "34208").normalized_full
    '123 MAIN ST, BRADENTON, FL, 34208'
    """
    raw = street.strip() if street else None
    city = city.strip() if city else None
    state = state.strip() if state else None
    zip_code = zip_code.strip() if zip_code else None

    parts = [p for p in (raw, city, state, zip_code) if p]
    return NormalizedAddress(
        raw=raw or None,
        line1=raw or None,
        city=city or None,
        state=state or default_state,
        zip_code=zip_code or None,
        normalized_full=", ".join(parts).upper(),
    )


def normalize_land(raw: PropertyDetails) -> Optional[NormalizedLand]:
    basic = raw.basic_info
    land = raw.land
    values = {
        "use_code": (basic.use_code if basic else None) or (land.land_use_code if land else None),
        "use_description": (basic.use_description if basic else None) or (land.land_use if land else None),
        "legal_description": (basic.legal_description if basic else None) or raw.legal,
        "acreage": land.lot_size_acres if land else None,
        "lot_size_sqft": land.lot_size_sqft if land else None,
        "zoning": raw.zoning,
    }
    values = {key: value for key, value in values.items() if value}
    return NormalizedLand(**values) if values else None


def normalize_improvements(raw: PropertyDetails) -> Optional[NormalizedImprovements]:
    building = raw.building
    values = {
        "year_built": raw.year_built or (building.year_built if building else None),
        "effective_year_built": building.effective_year_built if building else None,
        "living_area_sqft": raw.sqft or (building.living_area_sqft if building else None),
        "total_area_sqft": building.total_area_sqft if building else None,
        "bedrooms": raw.bedrooms if raw.bedrooms is not None else (building.bedrooms if building else None),
        "bathrooms": raw.bathrooms if raw.bathrooms is not None else (building.bathrooms if building else None),
        "stories": building.stories if building else None,
        "construction_type": building.construction_type if building else None,
    }
    if building is not None and building.pool is not None and building.pool.has_pool:
        values["pool"] = True
    if building is not None and building.garage is not None and (building.garage.spaces or 0) > 0:
        values["garage"] = True

    values = {key: value for key, value in values.items() if value is not None and value != ""}
    return NormalizedImprovements(**values) if values else None


def normalize_assessments(valuations: List[ValuationRecord]) -> List[NormalizedAssessment]:
    """One entry per tax year present, most recent first."""
    assessments = []
    for valuation in valuations:
        if valuation.year is None:
            continue
        just = valuation.just
        assessed = valuation.assessed
        assessments.append(NormalizedAssessment(
            tax_year=valuation.year,
            just_value=just.total if just else None,
            assessed_value=assessed.total if assessed else None,
            taxable_value=valuation.taxable.total if valuation.taxable else None,
            land_value=(just.land if just else None) or (assessed.land if assessed else None),
            improvement_value=(just.building if just else None) or (assessed.building if assessed else None),
            ad_valorem_taxes=valuation.ad_valorem_taxes,
            non_ad_valorem_taxes=valuation.non_ad_valorem_taxes,
        ))
    assessments.sort(key=lambda a: a.tax_year, reverse=True)
    return assessments


def normalize_sales(sales: List[SaleRecord]) -> List[NormalizedSale]:
    """Sales with a date or a price, keyed for dedup, most recent first."""
    normalized = [
        NormalizedSale(
            sale_date=sale.date,
            sale_price=sale.price,
            qualified=sale.qualified,
            deed_type=sale.deed_type,
            instrument=sale.instrument_number,
            book_page=sale.book_page,
            grantor=sale.grantor,
            grantee=sale.grantee,
            sale_key_sha256=compute_sale_key_sha256(
                sale_date=sale.date,
                sale_price=sale.price,
                book_page=sale.book_page,
                instrument=sale.instrument_number,
                grantee=sale.grantee,
            ),
        )
        for sale in sales
        if sale.date or sale.price
    ]
    return sort_by_date_desc(normalized, lambda s: s.sale_date)


def calculate_confidence(raw: PropertyDetails) -> float:
    """
    Heuristic completeness score in [0, 1]: a fixed weight for each populated
    field group. Adding a group never lowers the score.
    """
    building = raw.building
    extras = raw.extras
    present = {
        "parcel_id": bool(raw.parcel_id),
        "owner": bool(raw.owner and len(raw.owner) > 2),
        "address": bool(raw.address and len(raw.address) > 5),
        "valuations": bool(raw.valuations),
        "sales": bool(raw.sales_history),
        "building": bool(building is not None and building.has_details()),
        "extras": bool(extras is not None and (extras.pao_extra_features or extras.inspections)),
    }
    score = sum(CONFIDENCE_WEIGHTS[name] for name, ok in present.items() if ok)
    return min(score, 100) / 100


class PaoNormalizer:
    """
    Normalizer bound to one source's jurisdiction.

    Args:
        source_key: Registered source key used in provenance
        state_fips: 2-digit state FIPS code
        county_fips: 3-digit county FIPS code
        url_parcel_id: Extracts a parcel id from the detail URL when the
            record does not carry one
        default_state: State used when the situs address omits it
    """

    def __init__(
        self,
        source_key: str,
        state_fips: str,
        county_fips: str,
        url_parcel_id: Optional[Callable[[Optional[str]], Optional[str]]] = None,
        default_state: str = "FL",
    ):
        self.source_key = source_key
        self.state_fips = state_fips
        self.county_fips = county_fips
        self.url_parcel_id = url_parcel_id
        self.default_state = default_state

    def _provenance(self, group: str, meta: NormalizeMeta) -> ParcelProvenance:
        return ParcelProvenance(
            source=self.source_key,
            method=meta.method,
            source_url=meta.source_url,
            timestamp=meta.timestamp,
            confidence=PROVENANCE_CONFIDENCE[group],
        )

    def normalize(self, raw: PropertyDetails, meta: NormalizeMeta) -> NormalizedParcel:
        provenance: Dict[str, ParcelProvenance] = {}

        parcel_id_raw = raw.parcel_id
        if not parcel_id_raw and meta.source_url and self.url_parcel_id:
            parcel_id_raw = self.url_parcel_id(meta.source_url)
        parcel_id_norm = normalize_parcel_id(parcel_id_raw)
        if parcel_id_norm:
            provenance["parcel_id"] = self._provenance("parcel_id", meta)

        situs = normalize_address(raw.address, raw.city, raw.state, raw.zip_code, self.default_state)
        if situs.normalized_full:
            provenance["situs_address"] = self._provenance("situs_address", meta)

        mailing = None
        if raw.basic_info is not None and raw.basic_info.mailing_address:
            mailing = NormalizedAddress(
                raw=raw.basic_info.mailing_address,
                normalized_full=raw.basic_info.mailing_address.upper(),
            )

        owner_name = raw.owner.strip() if raw.owner and raw.owner.strip() else None
        if owner_name:
            provenance["owner_name"] = self._provenance("owner_name", meta)

        land = normalize_land(raw)
        if land is not None:
            provenance["land"] = self._provenance("land", meta)

        improvements = normalize_improvements(raw)
        if improvements is not None:
            provenance["improvements"] = self._provenance("improvements", meta)

        assessments = normalize_assessments(raw.valuations)
        if assessments:
            provenance["assessments"] = self._provenance("assessments", meta)

        sales = normalize_sales(raw.sales_history)
        if sales:
            provenance["sales"] = self._provenance("sales", meta)

        alternate_ids = []
        if raw.basic_info is not None and raw.basic_info.account_number:
            alternate_ids.append(raw.basic_info.account_number)

        confidence = calculate_confidence(raw)
        logger.debug(
            "parcel_normalized",
            source=self.source_key,
            parcel_id=parcel_id_norm,
            assessments=len(assessments),
            sales=len(sales),
            confidence=confidence,
        )

        return NormalizedParcel(
            state_fips=self.state_fips,
            county_fips=self.county_fips,
            parcel_id_raw=parcel_id_raw,
            parcel_id_norm=parcel_id_norm,
            alternate_ids=alternate_ids,
            situs_address=situs,
            mailing_address=mailing,
            owner_name=owner_name,
            land=land,
            improvements=improvements,
            assessments=assessments,
            sales=sales,
            provenance=provenance,
            confidence=confidence,
        )
