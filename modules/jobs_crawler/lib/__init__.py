# modules/jobs_crawler/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .config import ConfigError, CrawlSettings
from .engine import Crawler, run_crawl
from .models import CompanyProfile, JobDetail, JobRecord, JobSummary, RunSummary

__all__ = [
    "CompanyProfile",
    "ConfigError",
    "CrawlSettings",
    "Crawler",
    "JobDetail",
    "JobRecord",
    "JobSummary",
    "RunSummary",
    "run_crawl",
]
