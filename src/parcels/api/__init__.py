"""
FastAPI REST API for Parcel Ingestion

Provides REST endpoints to:
- Trigger a parcel ingestion for an address
- Read stored parcels with assessments and sales
- Inspect ingestion runs
- Discover registered sources
"""
