"""
Normalizers Package

Source record to canonical parcel mapping.
"""
from src.parcels.normalizers.pao_normalizer import NormalizeMeta, PaoNormalizer

__all__ = ["NormalizeMeta", "PaoNormalizer"]
