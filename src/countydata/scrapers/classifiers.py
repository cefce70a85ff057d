"""
Content Classifiers

Layout-agnostic extraction of property candidates from fetched content.
Source layouts differ per jurisdiction and are unknown ahead of time, so
instead of fixed column positions every fragment (table cell, list item,
JSON field, CSV column) is classified on its own as address-like,
owner-like, value-like, state-like, county-like or zip-like.

One ContentClassifier strategy exists per DataSource.method.
"""
import io
import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from bs4 import BeautifulSoup

from src.countydata.models.data_source import DataSource, SourceMethod
from src.countydata.models.property import RawCandidate
from src.countydata.utils.fips import STATE_ABBREVIATIONS, STATE_FIPS
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

STREET_SUFFIXES = (
    r'STREET|ST|AVENUE|AVE|BOULEVARD|BLVD|DRIVE|DR|ROAD|RD|LANE|LN|COURT|CT|'
    r'PLACE|PL|CIRCLE|CIR|WAY|TERRACE|TER|PARKWAY|PKWY|HIGHWAY|HWY|TRAIL|TRL'
)
ADDRESS_PATTERN = re.compile(
    rf'^\d+[A-Z]?\s+(?:[A-Z0-9#\'.-]+\s+){{0,6}}?(?:{STREET_SUFFIXES})\b\.?(?:[\s,].*)?$',
    re.IGNORECASE,
)
ADDRESS_SEARCH = re.compile(
    rf'\b\d+[A-Z]?\s+(?:[A-Z0-9\'.-]+\s+){{0,5}}?(?:{STREET_SUFFIXES})\b\.?',
    re.IGNORECASE,
)
ENTITY_SUFFIX = re.compile(
    r'\b(?:LLC|L\.L\.C\.?|INC|CORP|CORPORATION|COMPANY|CO|TRUST|TR|ESTATE|EST|'
    r'LP|LLP|LTD|PARTNERS|PARTNERSHIP|HOLDINGS|BANK|ASSOCIATION|ASSN)\b\.?',
    re.IGNORECASE,
)
ENTITY_SEARCH = re.compile(
    r'\b(?:[A-Z][A-Z0-9&\'.-]*\s+){1,5}(?:LLC|INC|CORP|CORPORATION|COMPANY|TRUST|ESTATE|LP|LLP|LTD|HOLDINGS)\b\.?',
    re.IGNORECASE,
)
PERSON_NAME = re.compile(r"^[A-Z][A-Z.'-]*(?:,?\s+(?:&\s+)?[A-Z][A-Z.'-]*){1,4}$", re.IGNORECASE)
CURRENCY = re.compile(r'^\$\s*\d[\d,]*(?:\.\d+)?$')
NUMBER = re.compile(r'^\d{1,3}(?:,\d{3})+(?:\.\d+)?$|^\d+(?:\.\d+)?$')
CURRENCY_SEARCH = re.compile(r'\$\s*\d[\d,]*(?:\.\d+)?')
ZIP_CODE = re.compile(r'^\d{5}(?:-\d{4})?$')
COUNTY_NAME = re.compile(r"^([A-Z][A-Z .'-]*?)\s+(?:COUNTY|PARISH|BOROUGH)$", re.IGNORECASE)

STATE_NAMES = {name.upper(): name for name, _ in STATE_FIPS.values()}

# Header words that look like personal names to PERSON_NAME
HEADER_WORDS = {
    'ADDRESS', 'OWNER', 'OWNER NAME', 'PROPERTY ADDRESS', 'SITUS', 'VALUE',
    'ASSESSED VALUE', 'PARCEL', 'PARCEL ID', 'ACCOUNT', 'STATUS', 'NAME',
    'LOCATION', 'TAX', 'TAXES', 'DATE', 'YEAR', 'TYPE', 'TOTAL',
}

FIELD_KEYS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('zip', ('zip', 'postal')),
    ('county', ('county', 'parish')),
    ('state', ('state',)),
    ('address', ('address', 'situs', 'location', 'street')),
    ('owner', ('owner', 'taxpayer', 'grantee', 'name')),
    ('value', ('value', 'assess', 'apprais', 'market', 'price', 'amount', 'mkt')),
)


def parse_currency(text: Any) -> Optional[float]:
    """Parse '$1,234.50' / '1234' / 1234 into a float."""
    if text is None:
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text) if not pd.isna(text) else None
    cleaned = re.sub(r'[$,\s]', '', str(text))
    try:
        return float(cleaned)
    except ValueError:
        return None


def classify_fragment(text: str) -> Tuple[Optional[str], Any]:
    """
    Classify a single text fragment.

    Args:
        text: Cell, list item or field text

    Returns:
        (kind, parsed value) where kind is one of address, owner, value,
        state, county, zip, or (None, None) if unrecognised
    """
    text = ' '.join(str(text).split())
    if not text:
        return None, None

    upper = text.upper()

    if CURRENCY.match(text):
        return 'value', parse_currency(text)
    if ZIP_CODE.match(text):
        return 'zip', text[:5]
    if NUMBER.match(text):
        return 'value', parse_currency(text)
    if ADDRESS_PATTERN.match(text):
        return 'address', text
    if upper in STATE_ABBREVIATIONS:
        return 'state', upper
    if upper in STATE_NAMES:
        return 'state', STATE_NAMES[upper]
    county = COUNTY_NAME.match(text)
    if county:
        return 'county', county.group(1).strip().title()
    if ENTITY_SUFFIX.search(text) and not any(ch.isdigit() for ch in text[:1]):
        return 'owner', text
    if PERSON_NAME.match(text) and upper not in HEADER_WORDS:
        return 'person', text

    return None, None


def candidate_from_fragments(
    fragments: Iterable[str],
    source: DataSource,
    raw_text: Optional[str] = None,
) -> Optional[RawCandidate]:
    """
    Build a RawCandidate from independently classified fragments.

    Entity-suffix owners win over plain personal names; the first fragment
    of each kind wins otherwise. State and county fall back to the source's
    jurisdiction.
    """
    fields: Dict[str, Any] = {}
    person = None

    for fragment in fragments:
        kind, value = classify_fragment(fragment)
        if kind is None or value is None:
            continue
        if kind == 'person':
            person = person or value
            continue
        fields.setdefault(kind, value)

    if 'owner' not in fields and person:
        fields['owner'] = person

    candidate = RawCandidate(
        address=fields.get('address'),
        owner=fields.get('owner'),
        value=fields.get('value'),
        state=fields.get('state') or source.state,
        county=fields.get('county') or source.county,
        zip=fields.get('zip'),
        raw_text=raw_text,
        source_url=source.url,
    )
    return candidate if candidate.has_signal() else None


def candidate_from_text(text: str, source: DataSource) -> Optional[RawCandidate]:
    """Search free text for address, entity owner and currency spans."""
    text = ' '.join(text.split())
    fragments = []
    for pattern in (ADDRESS_SEARCH, ENTITY_SEARCH, CURRENCY_SEARCH):
        match = pattern.search(text)
        if match:
            fragments.append(match.group(0))
    if not fragments:
        return None
    return candidate_from_fragments(fragments, source, raw_text=text[:500])


def candidate_from_record(record: Dict[str, Any], source: DataSource) -> Optional[RawCandidate]:
    """
    Build a RawCandidate from a key/value record (JSON object or CSV row).

    Recognised key names map directly; remaining string values are
    classified as fragments.
    """
    fields: Dict[str, Any] = {}
    leftovers: List[str] = []

    for key, value in record.items():
        if value is None or (isinstance(value, float) and pd.isna(value)):
            continue
        key_lower = str(key).lower()
        target = None
        for field_name, needles in FIELD_KEYS:
            if any(needle in key_lower for needle in needles):
                target = field_name
                break

        if target == 'value':
            parsed = parse_currency(value)
            if parsed is not None:
                fields.setdefault('value', parsed)
        elif target == 'zip':
            fields.setdefault('zip', str(value).strip()[:5])
        elif target is not None:
            text = ' '.join(str(value).split())
            if text:
                fields.setdefault(target, text)
        elif isinstance(value, str):
            leftovers.append(value)

    fallback = candidate_from_fragments(leftovers, source) if leftovers else None

    candidate = RawCandidate(
        address=fields.get('address') or (fallback.address if fallback else None),
        owner=fields.get('owner') or (fallback.owner if fallback else None),
        value=fields.get('value') if 'value' in fields else (fallback.value if fallback else None),
        state=fields.get('state') or source.state,
        county=fields.get('county') or source.county,
        zip=fields.get('zip') or (fallback.zip if fallback else None),
        source_url=source.url,
    )
    return candidate if candidate.has_signal() else None


class ContentClassifier(ABC):
    """Strategy that detects a record structure and extracts candidates from it."""

    name: str = "base"

    @abstractmethod
    def detect(self, content: str) -> Optional[Dict[str, str]]:
        """
        Look for a record structure.

        Returns:
            Selector description of the structure found, or None
        """

    @abstractmethod
    def extract(self, content: str, source: DataSource) -> List[RawCandidate]:
        """Extract raw candidates from content."""


class TableHeuristicClassifier(ContentClassifier):
    """HTML tables, then lists, then property/listing-labelled elements."""

    name = "table-heuristic"

    RECORD_ATTR = re.compile(r'property|parcel|record|result|listing', re.IGNORECASE)

    def detect(self, content: str) -> Optional[Dict[str, str]]:
        soup = BeautifulSoup(content, 'html.parser')

        for table in soup.find_all('table'):
            rows = [r for r in table.find_all('tr') if len(r.find_all(['td', 'th'])) >= 2]
            if len(rows) >= 2:
                return {'table_selector': 'table', 'row_selector': 'tr', 'cell_selector': 'td, th'}

        for list_tag in soup.find_all(['ul', 'ol']):
            if len(list_tag.find_all('li', recursive=False)) >= 3:
                return {'list_selector': 'ul, ol', 'item_selector': 'li'}

        if self._record_elements(soup):
            return {'record_selector': '[class*=property], [id*=property], [class*=listing], [id*=listing]'}

        return None

    def extract(self, content: str, source: DataSource) -> List[RawCandidate]:
        soup = BeautifulSoup(content, 'html.parser')
        candidates: List[RawCandidate] = []

        for row in soup.find_all('tr'):
            cells = row.find_all(['td', 'th'])
            if len(cells) < 2 or all(c.name == 'th' for c in cells):
                continue
            candidate = candidate_from_fragments(
                (c.get_text(' ', strip=True) for c in cells), source
            )
            if candidate:
                candidates.append(candidate)

        if not candidates:
            for item in soup.find_all('li'):
                candidate = candidate_from_text(item.get_text(' ', strip=True), source)
                if candidate:
                    candidates.append(candidate)

        if not candidates:
            for element in self._record_elements(soup):
                text = element.get_text(' ', strip=True)
                if len(text) > 10:
                    candidate = candidate_from_text(text, source)
                    if candidate:
                        candidates.append(candidate)

        return candidates

    def _record_elements(self, soup: BeautifulSoup) -> list:
        return [
            el for el in soup.find_all(True)
            if self.RECORD_ATTR.search(' '.join(el.get('class', []))) or
            self.RECORD_ATTR.search(el.get('id', '') or '')
        ]


class JsonApiClassifier(ContentClassifier):
    """JSON arrays of records, bare or wrapped (features/results/data/...)."""

    name = "api-json"

    WRAPPER_KEYS = ('features', 'results', 'data', 'records', 'items', 'rows', 'properties')

    def detect(self, content: str) -> Optional[Dict[str, str]]:
        path, records = self._locate_records(content)
        if records:
            return {'records_path': path}
        return None

    def extract(self, content: str, source: DataSource) -> List[RawCandidate]:
        _, records = self._locate_records(content)
        candidates = []
        for record in records:
            candidate = candidate_from_record(self._flatten(record), source)
            if candidate:
                candidates.append(candidate)
        return candidates

    def _locate_records(self, content: str) -> Tuple[str, List[Dict[str, Any]]]:
        try:
            payload = json.loads(content)
        except (ValueError, TypeError):
            return '', []

        if isinstance(payload, list):
            return '$', [r for r in payload if isinstance(r, dict)]

        if isinstance(payload, dict):
            for key in self.WRAPPER_KEYS:
                value = payload.get(key)
                if isinstance(value, list) and any(isinstance(r, dict) for r in value):
                    return key, [r for r in value if isinstance(r, dict)]

        return '', []

    @staticmethod
    def _flatten(record: Dict[str, Any]) -> Dict[str, Any]:
        # ArcGIS features nest fields under attributes, GeoJSON under properties
        for nested in ('attributes', 'properties'):
            if isinstance(record.get(nested), dict):
                return record[nested]
        return {k: v for k, v in record.items() if not isinstance(v, (dict, list))}


class CsvClassifier(ContentClassifier):
    """Delimited text with a header row."""

    name = "csv"

    def detect(self, content: str) -> Optional[Dict[str, str]]:
        frame = self._read(content)
        if frame is None or frame.empty or len(frame.columns) < 2:
            return None
        headers = ' '.join(str(c).lower() for c in frame.columns)
        if not any(needle in headers for _, needles in FIELD_KEYS for needle in needles):
            return None
        return {'header': ','.join(str(c) for c in frame.columns)}

    def extract(self, content: str, source: DataSource) -> List[RawCandidate]:
        frame = self._read(content)
        if frame is None:
            return []
        candidates = []
        for record in frame.to_dict(orient='records'):
            candidate = candidate_from_record(record, source)
            if candidate:
                candidates.append(candidate)
        return candidates

    @staticmethod
    def _read(content: str) -> Optional[pd.DataFrame]:
        if not content or '<' in content[:200]:
            return None
        try:
            return pd.read_csv(io.StringIO(content), dtype=str, keep_default_na=False, na_values=[''])
        except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
            logger.debug("csv_parse_failed", error=str(e))
            return None


DEFAULT_CLASSIFIERS: Dict[SourceMethod, ContentClassifier] = {
    SourceMethod.SCRAPER: TableHeuristicClassifier(),
    SourceMethod.API: JsonApiClassifier(),
    SourceMethod.CSV: CsvClassifier(),
}


def method_for_content_type(content_type: str, content: str = "") -> SourceMethod:
    """Pick the source method from a response Content-Type (and a peek at the body)."""
    content_type = (content_type or '').lower()
    if 'json' in content_type:
        return SourceMethod.API
    if 'csv' in content_type:
        return SourceMethod.CSV
    if 'html' in content_type or 'xml' in content_type:
        return SourceMethod.SCRAPER

    stripped = content.lstrip()[:1]
    if stripped in ('[', '{'):
        return SourceMethod.API
    if stripped and stripped != '<' and '\n' in content and ',' in content.split('\n', 1)[0]:
        return SourceMethod.CSV
    return SourceMethod.SCRAPER
