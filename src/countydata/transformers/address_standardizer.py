"""
Address Standardization Transformer

Normalizes street addresses and owner names scraped from heterogeneous
county sources into one consistent form.
"""
import re
from typing import Optional

from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)


class AddressStandardizer:
    """
    Standardizes addresses to a consistent USPS-style format.

    Upper-cases, strips punctuation, collapses whitespace and abbreviates
    street suffixes, unit designators and directionals. Abbreviated forms are
    never themselves dictionary keys, so standardize() is idempotent.
    """

    # Street type abbreviations
    STREET_TYPES = {
        'ALLEY': 'ALY', 'AVENUE': 'AVE', 'BOULEVARD': 'BLVD', 'CIRCLE': 'CIR',
        'COURT': 'CT', 'DRIVE': 'DR', 'EXPRESSWAY': 'EXPY', 'HIGHWAY': 'HWY',
        'LANE': 'LN', 'PARKWAY': 'PKWY', 'PLACE': 'PL', 'ROAD': 'RD',
        'STREET': 'ST', 'TERRACE': 'TER', 'TRAIL': 'TRL', 'PLAZA': 'PLZ',
        'POINT': 'PT', 'RIDGE': 'RDG', 'SQUARE': 'SQ'
    }

    # Unit type abbreviations
    UNIT_TYPES = {
        'APARTMENT': 'APT', 'BUILDING': 'BLDG', 'FLOOR': 'FL',
        'SUITE': 'STE', 'ROOM': 'RM'
    }

    # Directional abbreviations
    DIRECTIONS = {
        'NORTH': 'N', 'SOUTH': 'S', 'EAST': 'E', 'WEST': 'W',
        'NORTHEAST': 'NE', 'NORTHWEST': 'NW', 'SOUTHEAST': 'SE', 'SOUTHWEST': 'SW'
    }

    PUNCTUATION = re.compile(r"[.,;:!?'\"()\[\]{}]")
    WHITESPACE = re.compile(r'\s+')

    def __init__(self):
        """Initialize address standardizer."""
        self.abbreviations = {**self.STREET_TYPES, **self.UNIT_TYPES, **self.DIRECTIONS}
        # Longest first so NORTHEAST wins over NORTH
        words = sorted(self.abbreviations, key=len, reverse=True)
        self._abbreviation_pattern = re.compile(r'\b(' + '|'.join(words) + r')\b')
        logger.debug("address_standardizer_initialized", abbreviations=len(self.abbreviations))

    def standardize(self, address: Optional[str]) -> Optional[str]:
        """
        Standardize a street address.

        Args:
            address: Raw street address

        Returns:
            Standardized address; the input unchanged if standardization fails
        """
        if not address:
            logger.debug("empty_address_provided")
            return address

        try:
            cleaned = self.PUNCTUATION.sub('', address.upper())
            cleaned = self.WHITESPACE.sub(' ', cleaned).strip()
            standardized = self._abbreviation_pattern.sub(
                lambda m: self.abbreviations[m.group(1)], cleaned
            )
        except (TypeError, AttributeError) as e:
            logger.warning("address_standardization_failed", address=str(address)[:50], error=str(e))
            return address

        logger.debug(
            "address_standardized",
            original=address[:50],
            standardized=standardized[:50]
        )
        return standardized

    def standardize_name(self, name: Optional[str]) -> Optional[str]:
        """Collapse whitespace and upper-case an owner name."""
        if not name:
            return name
        return self.WHITESPACE.sub(' ', name).strip().upper()

    @staticmethod
    def normalize_key_component(text: Optional[str]) -> str:
        """
        Reduce text to lower-case alphanumerics for matching.

        Args:
            text: Address or owner text

        Returns:
            Normalized key fragment ('' for empty input)
        """
        if not text:
            return ''
        return re.sub(r'[^a-z0-9]', '', text.lower())

    @staticmethod
    def normalize_zip(zip_code: Optional[str]) -> Optional[str]:
        """
        Normalize ZIP code to 5 digits.

        Args:
            zip_code: Raw ZIP code

        Returns:
            5-digit ZIP code or None
        """
        if not zip_code:
            return None

        digits = re.sub(r'\D', '', str(zip_code))

        if len(digits) >= 5:
            return digits[:5]

        return None
