"""
Drawing Check Engine
====================
Rule-based defect detection for rendered engineering-drawing pages.

Architecture:
    - Region Tracer / Merger: Flood-fill connected components and coalesce boxes
    - Coordinate Mapper: Converts PDF text space into raster canvas space
    - Page Analyzers: Red markup, highlights, missing references, overlapping text
    - Geotech Extractor: Pulls seismic design values out of a geotechnical report
    - Geotech Verifier: Checks those values against the drawing's general notes
    - Analysis Engine: Runs every analyzer page by page and keeps running totals

Version: 1.0.0
"""

__version__ = "1.0.0"
