"""
County Data - Core Package

Discovers county property-record sources, scrapes and normalizes their
records, enriches them with federal reference data and reports quality
metrics through a phased integration orchestrator.
"""

__version__ = "0.1.0"
