from __future__ import annotations

from typing import Any

from .lib.config import CrawlSettings
from .lib.engine import run_crawl as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'jobs_crawler' module.

    Accepts kwargs (from runner/CLI), including:
      input_path: Optional[str]     # JSON/YAML input document
      start_urls: list[str]
      search_keywords: list[str]
      search_location: str = ""
      max_items: int = 200
      scrape_company: bool = True
      scrape_job_details: bool = True
      split_search_by_location: bool = False
      target_country: str = ""
      date_posted: str = ""
      output_path: Optional[str]    # JSONL dataset
      summary_path: Optional[str]   # run summary JSON

    Returns:
      meta dict: the run summary plus a human-readable 'message'.
    """
    # Build validated settings from env + kwargs
    settings = CrawlSettings.from_env_and_kwargs(kwargs)

    log_activity({
        "component": "jobs_crawler.main",
        "op": "start",
        "start_urls": len(settings.start_urls),
        "search_keywords": settings.search_keywords,
        "max_items": settings.max_items,
        "output_path": settings.output_path,
    })

    summary = _run_engine(settings)
    meta = summary.as_dict()
    meta["message"] = f"Scraped {summary.total_scraped} jobs"
    if settings.output_path:
        meta["output_path"] = settings.output_path
    return meta
