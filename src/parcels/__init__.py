"""
Parcel Ingestion - Core Package

County Property Appraiser scraping, normalization and storage of parcel
records with their assessment and sales history.
"""

__version__ = "0.1.0"
