"""
County Discovery Engine

Finds public property-data sources for every US county. Jurisdictions come
from the Census reference geography; for each one a bounded set of likely
assessor/clerk/recorder URLs is probed and validated by content.
"""
import asyncio
import re
from typing import Awaitable, Callable, List, Optional

from config.settings import settings
from src.countydata.errors import CountyDataError, EnrichmentFailure, SourceUnreachable
from src.countydata.models.data_source import CountyData, DataSource, DiscoveryResult, Jurisdiction, Priority
from src.countydata.models.policy import BatchPolicy
from src.countydata.scrapers.classifiers import DEFAULT_CLASSIFIERS, method_for_content_type
from src.countydata.utils.fips import state_abbreviation, state_name
from src.countydata.utils.http_client import AsyncHttpClient
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

URL_PATTERNS = [
    # Assessor
    'https://{county}.gov/assessor',
    'https://assessor.{county}.gov',
    'https://{county}.gov/tax-assessor',
    'https://tax.{county}.gov',
    # Clerk
    'https://{county}.gov/clerk',
    'https://clerk.{county}.gov',
    'https://{county}.gov/county-clerk',
    # Sheriff
    'https://{county}.gov/sheriff',
    'https://sheriff.{county}.gov',
    # Recorder
    'https://{county}.gov/recorder',
    'https://recorder.{county}.gov',
    # Treasurer
    'https://{county}.gov/treasurer',
    'https://treasurer.{county}.gov',
    # Legacy state-delegated domains
    'https://www.co.{county}.{st}.us/assessor',
    'https://www.co.{county}.{st}.us',
    'https://{county}county{st}.gov',
]

PROPERTY_KEYWORDS = [
    'property', 'assessor', 'tax', 'owner', 'address', 'value',
    'parcel', 'assessment', 'real estate', 'land records',
]

COUNTY_SUFFIX = re.compile(
    r'\s+(?:County|Parish|Borough|Census Area|City and Borough|Municipality|Municipio)$',
    re.IGNORECASE,
)

BatchCallback = Callable[[DiscoveryResult], Optional[Awaitable[None]]]


def calculate_priority(data_sources: List[DataSource]) -> Priority:
    """HIGH with 3+ active sources, MEDIUM with at least one, else LOW."""
    active = sum(1 for s in data_sources if s.is_active())
    if active >= 3:
        return Priority.HIGH
    if active >= 1:
        return Priority.MEDIUM
    return Priority.LOW


def count_keywords(text: str) -> int:
    """Number of distinct property keywords present in text."""
    lowered = text.lower()
    return sum(1 for keyword in PROPERTY_KEYWORDS if keyword in lowered)


class CountyDiscoveryEngine:
    """
    Discovers and validates per-county data sources.

    Jurisdictions are processed in fixed-size batches; members of a batch run
    concurrently and are joined before the next batch starts. URLs within one
    jurisdiction are probed sequentially.
    """

    def __init__(
        self,
        http_client: Optional[AsyncHttpClient] = None,
        batch_policy: Optional[BatchPolicy] = None,
        census_url: Optional[str] = None,
        census_api_key: Optional[str] = None,
        keyword_threshold: Optional[int] = None,
        max_candidate_urls: Optional[int] = None,
        head_timeout: Optional[float] = None,
        get_timeout: Optional[float] = None,
        classifiers=None,
    ):
        self.http_client = http_client or AsyncHttpClient()
        self.batch_policy = batch_policy or BatchPolicy.for_discovery()
        self.census_url = census_url or settings.census_api_base
        self.census_api_key = census_api_key or settings.census_api_key
        self.keyword_threshold = (
            keyword_threshold if keyword_threshold is not None else settings.discovery_keyword_threshold
        )
        self.max_candidate_urls = (
            max_candidate_urls if max_candidate_urls is not None else settings.discovery_max_candidate_urls
        )
        self.head_timeout = head_timeout if head_timeout is not None else settings.discovery_head_timeout_seconds
        self.get_timeout = get_timeout if get_timeout is not None else settings.discovery_get_timeout_seconds
        self.classifiers = classifiers or DEFAULT_CLASSIFIERS

        logger.info(
            "county_discovery_initialized",
            batch_size=self.batch_policy.batch_size,
            keyword_threshold=self.keyword_threshold
        )

    async def load_jurisdictions(self) -> List[Jurisdiction]:
        """
        Fetch every county from the Census reference geography.

        Returns:
            Jurisdictions parsed from the header-row JSON array

        Raises:
            EnrichmentFailure: If the service is unreachable or the payload
                is not a header-row array
        """
        params = {'get': 'NAME', 'for': 'county:*', 'in': 'state:*'}
        if self.census_api_key:
            params['key'] = self.census_api_key

        try:
            rows = await self.http_client.get_json(self.census_url, params=params)
        except SourceUnreachable as e:
            logger.error("jurisdiction_load_failed", error=str(e))
            raise EnrichmentFailure(f"Failed to fetch counties: {e.reason}") from e

        if not isinstance(rows, list) or len(rows) < 1:
            raise EnrichmentFailure("Failed to fetch counties: unexpected payload")

        jurisdictions = []
        for row in rows[1:]:
            if len(row) < 3:
                continue
            full_name, state_code, county_code = row[0], row[1], row[2]
            jurisdictions.append(Jurisdiction(
                name=full_name.split(',')[0].strip(),
                state=state_name(state_code),
                state_code=state_code,
                county_code=county_code,
            ))

        logger.info("jurisdictions_loaded", count=len(jurisdictions))
        return jurisdictions

    async def discover_all_counties(
        self,
        jurisdictions: Optional[List[Jurisdiction]] = None,
        on_batch_complete: Optional[BatchCallback] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> DiscoveryResult:
        """
        Run discovery over every jurisdiction.

        Args:
            jurisdictions: Pre-loaded jurisdictions (loaded from Census if omitted)
            on_batch_complete: Called with the running result after each batch join
            should_continue: Polled before each batch; returning False stops early

        Returns:
            DiscoveryResult with per-county outcomes and aggregate counts
        """
        if jurisdictions is None:
            jurisdictions = await self.load_jurisdictions()

        result = DiscoveryResult(total_counties=len(jurisdictions))
        batches = self.batch_policy.batches(jurisdictions)

        logger.info("discovery_started", total_counties=len(jurisdictions), batches=len(batches))

        for index, batch in enumerate(batches, start=1):
            if should_continue is not None and not should_continue():
                logger.info("discovery_stopped", batches_completed=index - 1)
                break

            outcomes = await asyncio.gather(
                *(self.discover_county_data(county) for county in batch),
                return_exceptions=True,
            )

            for county, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    result.errors.append(f"{county.name}, {county.state}: {outcome}")
                    logger.warning(
                        "county_discovery_failed",
                        county=county.name,
                        state=county.state,
                        error=str(outcome),
                        error_type=type(outcome).__name__
                    )
                    continue

                result.counties.append(outcome)
                result.failed_probes += outcome.failed_probes
                active = len(outcome.active_sources())
                result.active_sources += active
                if active:
                    result.discovered_counties += 1

            result.progress = index / len(batches) * 100

            logger.info(
                "discovery_batch_complete",
                batch=index,
                batches=len(batches),
                discovered_counties=result.discovered_counties,
                errors=len(result.errors)
            )

            if on_batch_complete is not None:
                maybe_awaitable = on_batch_complete(result)
                if asyncio.iscoroutine(maybe_awaitable):
                    await maybe_awaitable

            if index < len(batches) and self.batch_policy.delay_seconds:
                await asyncio.sleep(self.batch_policy.delay_seconds)

        logger.info(
            "discovery_complete",
            total_counties=result.total_counties,
            discovered_counties=result.discovered_counties,
            active_sources=result.active_sources,
            errors=len(result.errors)
        )
        return result

    async def discover_county_data(self, county: Jurisdiction) -> CountyData:
        """
        Probe candidate URLs for one jurisdiction.

        Args:
            county: Jurisdiction to probe

        Returns:
            CountyData with validated sources and a priority
        """
        urls = self.generate_candidate_urls(county)
        sources: List[DataSource] = []
        failed = 0

        for url in urls:
            source = await self.validate_data_source(url, county, index=len(sources) + 1)
            if source is None:
                failed += 1
            else:
                sources.append(source)

        county_data = CountyData(
            name=county.name,
            state=county.state,
            state_code=county.state_code,
            county_code=county.county_code,
            data_sources=sources,
            priority=calculate_priority(sources),
            probed_urls=len(urls),
            failed_probes=failed,
        )

        logger.debug(
            "county_probed",
            county=county.name,
            state=county.state,
            probed=len(urls),
            sources=len(sources)
        )
        return county_data

    @staticmethod
    def url_token(name: str) -> str:
        """'St. Mary's Parish' -> 'stmarys'"""
        base = COUNTY_SUFFIX.sub('', name.strip())
        return re.sub(r'[^a-z0-9]', '', base.lower())

    def generate_candidate_urls(self, county: Jurisdiction) -> List[str]:
        """
        Candidate source URLs for a jurisdiction.

        Returns:
            Distinct URLs in pattern order, capped at max_candidate_urls
        """
        token = self.url_token(county.name)
        if not token:
            return []
        st = (state_abbreviation(county.state_code) or '').lower()

        urls: List[str] = []
        for pattern in URL_PATTERNS:
            if '{st}' in pattern and not st:
                continue
            url = pattern.format(county=token, st=st)
            if url not in urls:
                urls.append(url)
        return urls[:self.max_candidate_urls]

    async def validate_data_source(
        self,
        url: str,
        county: Jurisdiction,
        index: int = 1,
    ) -> Optional[DataSource]:
        """
        Decide whether a URL is a usable property-data source.

        Args:
            url: Candidate URL
            county: Owning jurisdiction
            index: Ordinal of the source within the jurisdiction (for the id)

        Returns:
            DataSource when the page carries enough property keywords and a
            recognisable record structure, otherwise None
        """
        try:
            await self.http_client.head(url, timeout=self.head_timeout)
            response = await self.http_client.get(url, timeout=self.get_timeout)
        except CountyDataError as e:
            logger.debug("probe_unreachable", url=url, error=str(e))
            return None

        keywords = count_keywords(response.text)
        if keywords < self.keyword_threshold:
            logger.debug("probe_rejected", url=url, reason="keywords", keywords=keywords)
            return None

        method = method_for_content_type(response.content_type, response.text)
        classifier = self.classifiers[method]
        selectors = classifier.detect(response.text)
        if not selectors:
            logger.debug("probe_rejected", url=url, reason="structure", classifier=classifier.name)
            return None

        source = DataSource(
            id=f"source_{county.state_code}_{county.county_code}_{index}",
            name=f"{county.name} Data Source",
            url=url,
            method=method,
            selectors=selectors,
            state=county.state,
            state_code=county.state_code,
            county=self.display_county(county.name),
            county_code=county.county_code,
        )

        logger.info("data_source_validated", url=url, county=county.name, method=method.value)
        return source

    @staticmethod
    def display_county(name: str) -> str:
        """County name without its County/Parish/... suffix."""
        return COUNTY_SUFFIX.sub('', name.strip())
