"""
Parcel Ingestion Platform

County Property Appraiser ingestion: browser scraping, normalization into a
canonical parcel shape, and provenance-tracked storage.
"""

__version__ = "0.1.0"
