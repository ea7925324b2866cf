"""
Survey Quality Control (surveyqc) Package

Traversal and quality-control engine for hierarchical surveys.

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO knowledge of:
    - Survey source formats (CSV, spreadsheets)
    - HTML/JS rendering
    - Deployment platforms (crowdsourcing, payment)
    - Persistence

It simulates respondents over a Survey tree and scores
collected responses. Nothing here mutates a Survey.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
