"""
AutoNews Ingestion Module
=========================

Feed parsing, upload decoding and content normalization.

This module handles:
- RSS 2.0 / Atom parsing into feed items
- JSON, CSV and spreadsheet upload decoding
- Slug, plain-text and excerpt generation
- Mapping feed items and uploaded records onto one processed-content shape
"""
