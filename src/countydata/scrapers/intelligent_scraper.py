"""
Intelligent Property Scraper

Fetches a discovered data source under a retry policy, extracts property
candidates with a layout-agnostic content classifier and normalizes them
into ProcessedProperty records.
"""
import asyncio
import itertools
import time
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ValidationError

from src.countydata.errors import ContentMismatch, CountyDataError, NormalizationFailure
from src.countydata.models.data_source import DataSource, SourceMethod, SourceStatus
from src.countydata.models.policy import RetryPolicy
from src.countydata.models.property import ProcessedProperty, RawCandidate
from src.countydata.models.results import ScrapingResult
from src.countydata.scrapers.classifiers import DEFAULT_CLASSIFIERS, ContentClassifier
from src.countydata.utils.http_client import AsyncHttpClient
from src.countydata.utils.logger import get_logger

logger = get_logger(__name__)

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15',
]

# Points per recognised field
CONFIDENCE_WEIGHTS = {
    'address': 30,
    'owner': 25,
    'value': 25,
    'state': 10,
    'county': 10,
}


class IntelligentScraper:
    """
    Scraper for arbitrary county property sources.

    The classifier is chosen by DataSource.method, so the same scraper handles
    HTML tables, JSON APIs and CSV downloads. Attempts are strictly
    sequential; each one rotates the User-Agent header.
    """

    def __init__(
        self,
        http_client: Optional[AsyncHttpClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        user_agents: Optional[List[str]] = None,
        classifiers: Optional[Dict[SourceMethod, ContentClassifier]] = None,
    ):
        """
        Initialize the scraper.

        Args:
            http_client: Shared async HTTP client (one is created if omitted)
            retry_policy: Attempt/delay/timeout schedule
            user_agents: Identity header pool rotated per attempt
            classifiers: Classifier per source method
        """
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.http_client = http_client or AsyncHttpClient(default_timeout=self.retry_policy.timeout_seconds)
        self.user_agents = user_agents or USER_AGENTS
        self.classifiers = classifiers or DEFAULT_CLASSIFIERS
        self._agent_cycle = itertools.cycle(self.user_agents)
        logger.info(
            "intelligent_scraper_initialized",
            max_attempts=self.retry_policy.max_attempts,
            classifiers=[c.name for c in self.classifiers.values()]
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()

    async def cleanup(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.close()

    def _next_user_agent(self) -> str:
        return next(self._agent_cycle)

    def classifier_for(self, source: DataSource) -> ContentClassifier:
        return self.classifiers.get(source.method) or self.classifiers[SourceMethod.SCRAPER]

    async def scrape_county_data(self, source: DataSource) -> ScrapingResult:
        """
        Scrape one data source.

        Args:
            source: Validated data source; its status, success_rate and
                last_checked are updated with the outcome

        Returns:
            ScrapingResult; success=False with the last error once all
            attempts are exhausted. Never raises.
        """
        start = time.monotonic()
        policy = self.retry_policy
        classifier = self.classifier_for(source)
        last_error = None

        logger.info("scrape_started", source_id=source.id, url=source.url, classifier=classifier.name)

        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = await self.http_client.get(
                    source.url,
                    timeout=policy.timeout_seconds,
                    headers={'User-Agent': self._next_user_agent()},
                )
                candidates = classifier.extract(response.text, source)
                if not candidates:
                    raise ContentMismatch(f"No property records recognised at {source.url}")

                properties = []
                for candidate in candidates:
                    prop = self.normalize_candidate(candidate, source)
                    if prop is not None:
                        properties.append(prop)

                success_rate = len(properties) / len(candidates)
                source.status = SourceStatus.ACTIVE
                source.success_rate = success_rate
                source.last_checked = datetime.utcnow()

                logger.info(
                    "scrape_successful",
                    source_id=source.id,
                    attempt=attempt,
                    raw_records=len(candidates),
                    normalized_records=len(properties)
                )

                return ScrapingResult(
                    success=True,
                    data=properties,
                    source=source.id,
                    record_count=len(properties),
                    raw_count=len(candidates),
                    attempts=attempt,
                    processing_time=time.monotonic() - start,
                    classifier=classifier.name,
                    success_rate=success_rate,
                )

            except CountyDataError as e:
                last_error = str(e)
                logger.warning(
                    "scrape_attempt_failed",
                    source_id=source.id,
                    attempt=attempt,
                    error=last_error,
                    error_type=type(e).__name__
                )
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.error(
                    "scrape_attempt_error",
                    source_id=source.id,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__
                )

            if attempt < policy.max_attempts:
                await asyncio.sleep(policy.delay_for(attempt))

        source.status = SourceStatus.ERROR
        source.last_checked = datetime.utcnow()

        logger.error(
            "scrape_failed",
            source_id=source.id,
            attempts=policy.max_attempts,
            error=last_error
        )

        return ScrapingResult(
            success=False,
            source=source.id,
            attempts=policy.max_attempts,
            errors=[last_error] if last_error else [],
            processing_time=time.monotonic() - start,
            classifier=classifier.name,
        )

    @staticmethod
    def calculate_confidence(raw: RawCandidate) -> int:
        """
        Completeness score for a raw candidate.

        Args:
            raw: Candidate as extracted

        Returns:
            Sum of per-field weights for the fields present, capped at 100
        """
        score = 0
        for field_name, weight in CONFIDENCE_WEIGHTS.items():
            value = getattr(raw, field_name)
            if value is not None and value != '':
                score += weight
        return min(score, 100)

    def normalize_candidate(self, raw: RawCandidate, source: DataSource) -> Optional[ProcessedProperty]:
        """
        Turn a raw candidate into a ProcessedProperty.

        Args:
            raw: Candidate as extracted
            source: Originating data source

        Returns:
            ProcessedProperty, or None when address, owner, state or county
            is missing
        """
        try:
            missing = [f for f in ('address', 'owner', 'state', 'county') if not getattr(raw, f)]
            if missing:
                raise NormalizationFailure(f"missing {', '.join(missing)}")

            return ProcessedProperty(
                address=' '.join(raw.address.split()).upper(),
                owner_name=' '.join(raw.owner.split()).upper(),
                assessed_value=raw.value if raw.value is not None and raw.value >= 0 else None,
                state=raw.state,
                county=raw.county,
                zip=raw.zip,
                confidence_score=self.calculate_confidence(raw),
                data_source=source.url,
            )
        except (NormalizationFailure, ValidationError) as e:
            logger.debug(
                "candidate_rejected",
                source_id=source.id,
                address=(raw.address or '')[:50],
                reason=str(e)[:200]
            )
            return None
