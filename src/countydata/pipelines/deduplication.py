"""
Data Deduplication Pipeline

Collapses property records scraped from several sources that describe the
same address/owner pair.
"""
from typing import Dict, List, TypeVar

from src.countydata.models.property import ProcessedProperty
from src.countydata.transformers.address_standardizer import AddressStandardizer
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

P = TypeVar("P", bound=ProcessedProperty)


class PropertyDeduplicator:
    """
    Deduplicates property records by normalized address and owner.

    On a key collision the incoming record replaces the stored one only when
    its confidence_score is strictly greater; on ties the first-seen record
    is kept. Output preserves the order in which keys were first seen.
    """

    def __init__(self, standardizer: AddressStandardizer = None):
        """Initialize deduplicator with address standardizer."""
        self.standardizer = standardizer or AddressStandardizer()

    def create_key(self, prop: ProcessedProperty) -> str:
        """
        Build the deduplication key for a record.

        Args:
            prop: Property record

        Returns:
            '<normalized address>_<normalized owner>'
        """
        address = self.standardizer.normalize_key_component(prop.address)
        owner = self.standardizer.normalize_key_component(prop.owner_name)
        return f"{address}_{owner}"

    def deduplicate(self, properties: List[P]) -> List[P]:
        """
        Keep one record per deduplication key.

        Args:
            properties: Records in arrival order

        Returns:
            Winning record per key, in first-seen key order
        """
        unique: Dict[str, P] = {}
        collisions = 0
        replacements = 0

        for prop in properties:
            key = self.create_key(prop)
            existing = unique.get(key)

            if existing is None:
                unique[key] = prop
                continue

            collisions += 1
            if prop.confidence_score > existing.confidence_score:
                unique[key] = prop
                replacements += 1

        logger.info(
            "deduplication_complete",
            input_records=len(properties),
            unique_records=len(unique),
            collisions=collisions,
            replacements=replacements
        )

        return list(unique.values())
