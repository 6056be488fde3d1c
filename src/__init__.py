"""VoteSnap DR form collection service.

Field agents photograph Declaration of Results forms, Tesseract OCR
and a heuristic parser extract candidate votes and turnout figures,
and administrators see aggregated totals and per-station results.
"""

__version__ = "1.0.0"
