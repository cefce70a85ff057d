"""
Scrapers Package

Retrying source scraper and the content classifiers it extracts records with.
"""

from .classifiers import ContentClassifier, CsvClassifier, JsonApiClassifier, TableHeuristicClassifier
from .intelligent_scraper import IntelligentScraper

__all__ = [
    "ContentClassifier",
    "CsvClassifier",
    "IntelligentScraper",
    "JsonApiClassifier",
    "TableHeuristicClassifier",
]
