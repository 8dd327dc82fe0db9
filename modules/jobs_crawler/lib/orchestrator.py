"""
Request router / orchestrator: the only owner of crawl state.

Every completed fetch comes back through `Orchestrator.handle`, which returns
a Decision for the pool:

  Proceed(dispatch)           follow-up requests to enqueue (possibly none)
  Retry(delay, rotate)        requeue the same request after `delay` seconds
  Drop(reason, cooldown)      give up on this request; optionally pause the
                              frontier for `cooldown` seconds

State owned here and nowhere else:
  - scraped job ids (dedupe across pages and shards)
  - the company cache + pending-join table
  - the budget: rows pushed, plus jobs "open" (dispatched, not yet pushed)

Every job is pushed exactly once, after its last requested wave resolved or
permanently failed. Failures degrade the row; they never lose it.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Union

from . import logging_bridge
from .backoff import RetryPolicy, is_rate_limited
from .crawl_requests import (
    CompanyRequest,
    CrawlRequest,
    JobDetailRequest,
    RequestKind,
    SearchRequest,
)
from .join import CacheState, CompanyJoinTable
from .models import CompanyProfile, JobRecord
from .parsers import LinkedInParser
from .sink import ResultSink
from .urls import company_page_url, extract_company_key, get_start_param, job_detail_url

LOG = logging.getLogger(__name__)

PROGRESS_EVERY = 100


# -----------------------------------------------------------------------------
# Fetch results & decisions
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class FetchResult:
    request: CrawlRequest
    status_code: int
    markup: str = ""
    retry_count: int = 0


@dataclass(frozen=True)
class Proceed:
    dispatch: tuple[CrawlRequest, ...] = ()


@dataclass(frozen=True)
class Retry:
    delay: float
    rotate_identity: bool = False


@dataclass(frozen=True)
class Drop:
    reason: str
    cooldown: float = 0.0


Decision = Union[Proceed, Retry, Drop]


# =============================================================================
# ORCHESTRATOR
# =============================================================================
class Orchestrator:
    def __init__(
        self,
        sink: ResultSink,
        *,
        parser: LinkedInParser | None = None,
        policy: RetryPolicy | None = None,
        max_items: int = 200,
        scrape_job_details: bool = True,
        scrape_company: bool = True,
        rate_limit_pause: float = 5.0,
    ):
        self.sink = sink
        self.parser = parser or LinkedInParser()
        self.policy = policy or RetryPolicy()
        self.max_items = int(max_items)
        self.scrape_job_details = scrape_job_details
        self.scrape_company = scrape_company
        self.rate_limit_pause = float(rate_limit_pause)

        self._lock = threading.Lock()
        self._scraped_ids: set[str] = set()
        self._open: set[str] = set()
        self._pushed = 0
        self._joins = CompanyJoinTable()
        self.stats: Counter[str] = Counter()

    # ---- budget ----
    @property
    def pushed(self) -> int:
        return self._pushed

    @property
    def open_jobs(self) -> int:
        return len(self._open)

    @property
    def budget_exhausted(self) -> bool:
        return self._pushed >= self.max_items

    def _room(self) -> int:
        return self.max_items - self._pushed - len(self._open)

    def should_fetch(self, request: CrawlRequest) -> bool:
        """Consulted by the pool right before a request is fetched."""
        with self._lock:
            if self.budget_exhausted:
                if isinstance(request, JobDetailRequest):
                    self._open.discard(request.record.job_id)
                return False
            if isinstance(request, SearchRequest) and self._room() <= 0:
                self.stats["search_pages_skipped"] += 1
                return False
            return True

    # ---- entry points ----
    def handle(self, result: FetchResult) -> Decision:
        with self._lock:
            req = result.request
            self.stats[f"fetched_{req.kind.value.lower()}"] += 1
            if isinstance(req, SearchRequest):
                return self._handle_search(req, result)
            if isinstance(req, JobDetailRequest):
                return self._handle_job_detail(req, result)
            if isinstance(req, CompanyRequest):
                return self._handle_company(req, result)
            raise TypeError(f"unknown request type: {type(req).__name__}")

    def on_failed(self, request: CrawlRequest, reason: str) -> None:
        """The fetch layer gave up on `request` (retries exhausted)."""
        with self._lock:
            self.stats["failed_requests"] += 1
            logging_bridge.error({
                "component": "jobs_crawler.orchestrator",
                "op": "request_failed",
                "kind": request.kind.value,
                "url": request.url,
                "reason": reason,
            })
            if isinstance(request, SearchRequest):
                LOG.error("Search page failed permanently: %s (%s)", request.url, reason)
            elif isinstance(request, JobDetailRequest):
                LOG.warning("Job %s detail failed (%s); pushing partial data", request.record.job_id, reason)
                self._push(request.record)
            elif isinstance(request, CompanyRequest):
                LOG.warning("Company %s failed (%s); tombstoning", request.key, reason)
                self._resolve_company(request, None)

    # -------------------------------------------------------------------------
    # SEARCH
    # -------------------------------------------------------------------------
    def _handle_search(self, req: SearchRequest, result: FetchResult) -> Decision:
        if self.budget_exhausted:
            return Drop("budget_exhausted")

        status = result.status_code
        if is_rate_limited(status):
            # The page is not retried; the frontier pauses instead.
            self.stats["rate_limited_search"] += 1
            LOG.warning("Rate limited (%s) on search page %s; pausing %.1fs", status, req.url, self.rate_limit_pause)
            return Drop("rate_limited", cooldown=self.rate_limit_pause)
        if status != 200:
            LOG.warning("Search page returned %s: %s", status, req.url)
            return Drop(f"http_{status}")

        try:
            cards = self.parser.parse_search_results(result.markup)
        except Exception:
            LOG.exception("Failed to parse search page %s", req.url)
            return Drop("parse_error")

        LOG.info("Found %d jobs on page (start=%d) %s", len(cards), get_start_param(req.url), req.label)
        if not cards:
            return Proceed()

        dispatch: list[CrawlRequest] = []
        duplicates = 0
        for card in cards:
            if card.job_id in self._scraped_ids:
                duplicates += 1
                continue
            if self._room() <= 0:
                break
            self._scraped_ids.add(card.job_id)
            record = JobRecord(summary=card, input_url=req.input_url or req.url, label=req.label)
            if self.scrape_job_details:
                self._open.add(card.job_id)
                dispatch.append(JobDetailRequest(url=job_detail_url(card.job_id), record=record))
            else:
                self._push(record)

        if duplicates:
            self.stats["duplicates_skipped"] += duplicates
            LOG.info("Skipped %d duplicate jobs (already scraped)", duplicates)
        return Proceed(tuple(dispatch))

    # -------------------------------------------------------------------------
    # JOB_DETAIL
    # -------------------------------------------------------------------------
    def _handle_job_detail(self, req: JobDetailRequest, result: FetchResult) -> Decision:
        record = req.record
        if self.budget_exhausted:
            self._open.discard(record.job_id)
            return Drop("budget_exhausted")

        status = result.status_code
        if is_rate_limited(status):
            self.stats["rate_limited_job_detail"] += 1
            delay = self.policy.delay_for(RequestKind.JOB_DETAIL, result.retry_count)
            LOG.warning("Rate limited (%s) on job %s; retrying in %.1fs", status, record.job_id, delay)
            return Retry(delay)

        if status != 200 or self.parser.is_blocked(result.markup, status):
            LOG.warning("Job %s detail unavailable (status %s); pushing summary only", record.job_id, status)
            self.stats["job_detail_degraded"] += 1
            self._push(record)
            return Drop("login_wall" if status == 200 else f"http_{status}")

        try:
            record.detail = self.parser.parse_job_detail(result.markup)
        except Exception:
            LOG.exception("Failed to parse job detail %s", record.job_id)
            self.stats["job_detail_degraded"] += 1
            self._push(record)
            return Drop("parse_error")

        return Proceed(tuple(self._join_company(record)))

    def _join_company(self, record: JobRecord) -> list[CrawlRequest]:
        if not self.scrape_company:
            self._push(record)
            return []

        key = extract_company_key(record.summary.company_url)
        if not key:
            self._push(record)
            return []

        entry = self._joins.lookup(key)
        if entry is None:
            self._joins.begin(key)
            LOG.debug("Queueing company %s for job %s", key, record.job_id)
            return [CompanyRequest(url=company_page_url(key), key=key, passengers=[record])]
        if entry.state is CacheState.IN_FLIGHT:
            self._joins.park(key, record)
            return []

        record.company = entry.profile
        self._push(record)
        return []

    # -------------------------------------------------------------------------
    # COMPANY
    # -------------------------------------------------------------------------
    def _handle_company(self, req: CompanyRequest, result: FetchResult) -> Decision:
        status = result.status_code
        transient = is_rate_limited(status) or (
            status in (200, 401, 403) and self.parser.is_blocked(result.markup, status)
        )
        if transient:
            if self.policy.company_may_retry(result.retry_count):
                self.stats["company_retries"] += 1
                delay = self.policy.delay_for(RequestKind.COMPANY, result.retry_count)
                LOG.warning(
                    "Company %s blocked (status %s, retry %d); rotating identity, retrying in %.1fs",
                    req.key,
                    status,
                    result.retry_count + 1,
                    delay,
                )
                return Retry(delay, rotate_identity=True)
            LOG.warning("Company %s still blocked after %d retries; skipping company data", req.key, result.retry_count)
            self._resolve_company(req, None)
            return Drop("retries_exhausted")

        if status != 200:
            LOG.warning("Company %s returned %s; skipping company data", req.key, status)
            self._resolve_company(req, None)
            return Drop(f"http_{status}")

        try:
            profile = self.parser.parse_company_page(result.markup)
        except Exception:
            LOG.exception("Failed to parse company page %s", req.key)
            self._resolve_company(req, None)
            return Drop("parse_error")

        LOG.info("Company %s parsed: %d fields", req.key, profile.field_count())
        self._resolve_company(req, profile)
        return Proceed()

    def _resolve_company(self, req: CompanyRequest, profile: CompanyProfile | None) -> None:
        drained = self._joins.resolve(req.key, profile, req.passengers)
        req.passengers.clear()
        for record in drained:
            record.company = profile
            self._push(record)

    # -------------------------------------------------------------------------
    # PUSH
    # -------------------------------------------------------------------------
    def _push(self, record: JobRecord) -> bool:
        self._open.discard(record.job_id)
        self._scraped_ids.add(record.job_id)
        if self.budget_exhausted:
            self.stats["pushes_refused"] += 1
            LOG.debug("Budget reached; not pushing job %s", record.job_id)
            return False
        self.sink.push(record)
        self._pushed += 1
        if self._pushed % PROGRESS_EVERY == 0:
            LOG.info("Progress: %d/%d jobs scraped", self._pushed, self.max_items)
        return True

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                **dict(self.stats),
                **self._joins.stats(),
                "pushed": self._pushed,
                "open_jobs": len(self._open),
                "scraped_ids": len(self._scraped_ids),
            }
