"""
Property Validation

Completeness and street-grammar checks that decide whether a processed
record counts as valid.
"""
import re
from typing import Optional

from config.settings import settings
from src.countydata.models.property import ProcessedProperty

# Leading house number, street-name tokens, a recognised suffix, optional trailing tokens
STREET_GRAMMAR = re.compile(
    r'^\d+\s+[A-Z\s]+(?:ST|AVE|BLVD|DR|RD|LN|CT|PL|CIR|WAY|TER|PKWY|HWY)\s*[A-Z\s]*$',
    re.IGNORECASE,
)

MIN_ADDRESS_LENGTH = 5
MIN_OWNER_LENGTH = 2
UNKNOWN_STATE = "Unknown"


def matches_street_grammar(address: Optional[str]) -> bool:
    return bool(address) and STREET_GRAMMAR.match(address) is not None


def is_valid_property(prop: ProcessedProperty, min_confidence: Optional[int] = None) -> bool:
    """
    Decide whether a record is complete and plausible.

    Args:
        prop: Processed or enriched property
        min_confidence: Override for the minimum confidence score

    Returns:
        True iff address length >= 5, owner length >= 2, state is known,
        the address matches the street grammar and confidence >= threshold
    """
    threshold = settings.min_valid_confidence if min_confidence is None else min_confidence

    if not prop.address or len(prop.address) < MIN_ADDRESS_LENGTH:
        return False
    if not prop.owner_name or len(prop.owner_name) < MIN_OWNER_LENGTH:
        return False
    if not prop.state or prop.state == UNKNOWN_STATE:
        return False
    if not matches_street_grammar(prop.address):
        return False
    if prop.confidence_score < threshold:
        return False

    return True
