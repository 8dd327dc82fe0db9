"""
Engine for running one crawl: seed the frontier, fetch in a worker pool,
route every result through the orchestrator, write the run summary.

Features:
  - Bounded parallel fetching (ThreadPoolExecutor, `max_concurrency` workers)
  - Results handled one at a time on the loop thread, in completion order
  - Priority frontier with per-request backoff and a global cooldown
  - Network errors retried up to `max_request_retries`, then degraded
  - Dependency injection for testability (`fetcher`, `parser`, `sink`, `policy`)
  - Structured activity/error records via `logging_bridge`
"""

from __future__ import annotations

import logging
import random
import time
from collections import Counter
from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from . import logging_bridge
from .backoff import RetryPolicy
from .config import CrawlSettings
from .frontier import Frontier, QueuedRequest
from .http_client import BaseFetcher, HttpClient, Identity, NetworkError, PageResponse
from .models import RunSummary
from .orchestrator import Drop, FetchResult, Orchestrator, Proceed, Retry
from .parsers import LinkedInParser
from .sink import CollectingSink, JsonlSink, ResultSink, write_summary
from .urls import seed_requests
from .utils import now_iso, random_delay, scrub_proxy_url

LOG = logging.getLogger(__name__)

_FetchOutcome = tuple[Identity | None, PageResponse | None, Exception | None]


# =============================================================================
# CRAWLER
# =============================================================================
class Crawler:
    def __init__(
        self,
        settings: CrawlSettings,
        *,
        fetcher: BaseFetcher | None = None,
        parser: LinkedInParser | None = None,
        sink: ResultSink | None = None,
        policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or HttpClient(
            timeout=settings.request_timeout,
            pool_size=settings.identity_pool_size,
            proxies=settings.proxy_urls,
        )
        if sink is None:
            sink = JsonlSink(settings.output_path) if settings.output_path else CollectingSink()
        self.sink = sink
        self.policy = policy or RetryPolicy(company_max_retries=settings.company_max_retries)
        self.orchestrator = Orchestrator(
            self.sink,
            parser=parser,
            policy=self.policy,
            max_items=settings.max_items,
            scrape_job_details=settings.scrape_job_details,
            scrape_company=settings.scrape_company,
            rate_limit_pause=settings.rate_limit_pause,
        )
        self.frontier = Frontier(clock=clock)
        self.stats: Counter[str] = Counter()
        self._sleep = sleep
        self._rng = random.Random()

    # -------------------------------------------------------------------------
    # WORKER: runs in a pool thread, fetches only
    # -------------------------------------------------------------------------
    def _fetch(self, item: QueuedRequest) -> _FetchOutcome:
        delay = random_delay(self.settings.min_delay, self.settings.max_delay, self._rng)
        if delay > 0:
            self._sleep(delay)
        identity = self.fetcher.acquire_identity()
        try:
            return identity, self.fetcher.fetch(item.request.url, identity), None
        except NetworkError as e:
            return identity, None, e

    # -------------------------------------------------------------------------
    # LOOP
    # -------------------------------------------------------------------------
    def run(self) -> RunSummary:
        start_ns = time.perf_counter_ns()
        s = self.settings

        seeded = self.frontier.add_all(seed_requests(s))
        if not seeded:
            LOG.warning("No valid search requests to run.")
        logging_bridge.activity({
            "component": "jobs_crawler.engine",
            "op": "start",
            "seed_requests": seeded,
            "max_items": s.max_items,
            "max_concurrency": s.max_concurrency,
            "scrape_company": s.scrape_company,
            "scrape_job_details": s.scrape_job_details,
            "split_search_by_location": s.split_search_by_location,
            "proxies": [scrub_proxy_url(p) for p in s.proxy_urls],
        })

        in_flight: dict[Future[_FetchOutcome], QueuedRequest] = {}
        try:
            with ThreadPoolExecutor(max_workers=s.max_concurrency, thread_name_prefix="crawl") as pool:
                while True:
                    self._fill(pool, in_flight)

                    if not in_flight:
                        wait_s = self.frontier.next_due_in()
                        if wait_s is None:
                            break
                        self._sleep(max(wait_s, 0.01))
                        continue

                    done, _ = wait(in_flight, timeout=self._wait_timeout(in_flight), return_when=FIRST_COMPLETED)
                    for fut in done:
                        self._complete(in_flight.pop(fut), fut)
        finally:
            self.sink.close()
            if self._owns_fetcher:
                self.fetcher.close()

        summary = RunSummary(
            total_scraped=self.orchestrator.pushed,
            start_urls=len(s.start_urls),
            search_keywords=list(s.search_keywords),
            split_search_by_location=s.split_search_by_location,
            completed_at=now_iso(),
            stats={**self.orchestrator.snapshot(), **dict(self.stats)},
        )
        if s.summary_path:
            write_summary(s.summary_path, summary)

        total_us = int((time.perf_counter_ns() - start_ns) // 1000)
        logging_bridge.activity({
            "component": "jobs_crawler.engine",
            "op": "summary",
            **summary.as_dict(),
            "total_us": total_us,
        })
        LOG.info("Done! Scraped %d jobs.", summary.total_scraped)
        return summary

    def _fill(self, pool: ThreadPoolExecutor, in_flight: dict[Future[_FetchOutcome], QueuedRequest]) -> None:
        while len(in_flight) < self.settings.max_concurrency:
            item = self.frontier.pop_ready()
            if item is None:
                return
            if not self.orchestrator.should_fetch(item.request):
                self.stats["requests_skipped"] += 1
                continue
            in_flight[pool.submit(self._fetch, item)] = item

    def _wait_timeout(self, in_flight: dict) -> float | None:
        # With every slot busy only a completion can make progress.
        if len(in_flight) >= self.settings.max_concurrency:
            return None
        due = self.frontier.next_due_in()
        return None if due is None else max(due, 0.01)

    def _complete(self, item: QueuedRequest, fut: Future[_FetchOutcome]) -> None:
        req = item.request
        try:
            identity, page, err = fut.result()
        except Exception as e:
            logging_bridge.error({
                "component": "jobs_crawler.engine",
                "op": "fetch",
                "kind": req.kind.value,
                "url": req.url,
                "error": repr(e),
            })
            identity, page, err = None, None, e

        if err is not None or page is None:
            self.stats["network_errors"] += 1
            if item.retry_count < self.settings.max_request_retries:
                delay = self.policy.network_delay(item.retry_count)
                LOG.warning("Fetch failed for %s (%s); retry %d in %.1fs", req.url, err, item.retry_count + 1, delay)
                self.frontier.requeue(item, delay)
            else:
                self.orchestrator.on_failed(req, f"network error: {err}")
            return

        decision = self.orchestrator.handle(
            FetchResult(request=req, status_code=page.status_code, markup=page.markup, retry_count=item.retry_count)
        )

        if isinstance(decision, Proceed):
            self.frontier.add_all(decision.dispatch)
        elif isinstance(decision, Retry):
            self.stats["retries"] += 1
            if decision.rotate_identity:
                self.fetcher.retire_identity(identity)
            if item.retry_count >= self.settings.max_request_retries:
                self.orchestrator.on_failed(req, f"gave up after {item.retry_count} retries (status {page.status_code})")
            else:
                self.frontier.requeue(item, decision.delay)
        elif isinstance(decision, Drop):
            self.stats[f"dropped_{decision.reason}"] += 1
            if decision.cooldown > 0:
                self.frontier.pause(decision.cooldown)


# =============================================================================
# PUBLIC API
# =============================================================================
def run_crawl(
    settings: CrawlSettings,
    fetcher: BaseFetcher | None = None,
    parser: LinkedInParser | None = None,
    sink: ResultSink | None = None,
    policy: RetryPolicy | None = None,
) -> RunSummary:
    """
    Run one complete crawl and return its summary.

    Args:
        settings: Validated CrawlSettings.
        fetcher: Optional fetch capability override (tests inject scripted fakes).
        parser: Optional parser override.
        sink: Where rows go; defaults to a JSONL file at settings.output_path,
              or an in-memory CollectingSink when no path is set.
        policy: Optional backoff schedule override.
    """
    return Crawler(settings, fetcher=fetcher, parser=parser, sink=sink, policy=policy).run()
