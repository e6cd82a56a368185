"""
PDF Page-Order Reconstruction
=============================

Recovers the reading order of a PDF whose pages have been shuffled, and
reports duplicates, missing pages and a synthesized table of contents.

Main components:
- Text extraction (with OCR for scanned pages)
- Page role classification and page-number recovery
- Similarity analysis and order planning
- Duplicate and missing page detection
- TOC synthesis and export of the reordered PDF
"""

__version__ = "1.0.0"
__author__ = "Document Reconstruction Team"
