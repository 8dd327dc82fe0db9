from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import yaml

from .cities import COUNTRY_CITIES
from .utils import truthy

LOG = logging.getLogger(__name__)

INPUT_ENV_VAR = "JOBS_CRAWLER_INPUT"

DATE_POSTED_ALIASES = {
    "past-24h": "r86400",
    "past-week": "r604800",
    "past-month": "r2592000",
}
_DATE_POSTED_RE = re.compile(r"^r\d+$")

# Input documents written for the hosted actor use camelCase keys.
_KEY_ALIASES = {
    "startUrls": "start_urls",
    "searchKeywords": "search_keywords",
    "searchLocation": "search_location",
    "maxItems": "max_items",
    "scrapeCompany": "scrape_company",
    "scrapeJobDetails": "scrape_job_details",
    "splitSearchByLocation": "split_search_by_location",
    "targetCountry": "target_country",
    "datePosted": "date_posted",
    "proxy": "proxy_config",
    "proxyConfiguration": "proxy_config",
}


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/input file cannot form valid CrawlSettings."""


# -----------------------------
# Model
# -----------------------------
@dataclass
class CrawlSettings:
    """
    Canonical configuration for one 'jobs_crawler' run.

    Search selection: `start_urls` (LinkedIn search URLs) win over
    `search_keywords` (+ optional `search_location`). At least one is required.
    """

    # What to search
    start_urls: list[str] = field(default_factory=list)
    search_keywords: list[str] = field(default_factory=list)
    search_location: str = ""
    split_search_by_location: bool = False
    target_country: str = ""
    date_posted: str = ""  # f_TPR token, e.g. "r86400"

    # What to collect
    max_items: int = 200
    scrape_job_details: bool = True
    scrape_company: bool = True

    # Fetching behavior
    proxy_urls: list[str] = field(default_factory=list, repr=False)
    max_concurrency: int = 3
    max_request_retries: int = 5
    company_max_retries: int = 4
    request_timeout: float = 30.0
    min_delay: float = 0.3
    max_delay: float = 0.8
    rate_limit_pause: float = 5.0
    identity_pool_size: int = 20

    # Where results go (None -> in-memory only)
    output_path: str | None = None
    summary_path: str | None = None

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> CrawlSettings:
        """
        Build CrawlSettings from kwargs with validation.

        An input document may be given as `input_path` (JSON or YAML) or via
        the JOBS_CRAWLER_INPUT env var; explicit kwargs override its values.

        Expected keys (all optional, but see the start_urls/search_keywords rule):

            start_urls: list[str | {"url": str}]
            search_keywords: list[str] | str   # comma-separated string accepted
            search_location: str = ""
            max_items: int = 200
            scrape_company: bool = true
            scrape_job_details: bool = true
            split_search_by_location: bool = false
            target_country: str = ""           # key of the city catalog, e.g. "usa"
            date_posted: str = ""              # "r<seconds>" or past-24h/past-week/past-month
            proxy_config: {"proxy_urls": [...]} | list[str] | str

            max_concurrency: int = 3
            max_request_retries: int = 5
            company_max_retries: int = 4
            request_timeout: float = 30
            min_delay / max_delay: float = 0.3 / 0.8   # politeness delay per fetch (seconds)
            rate_limit_pause: float = 5                # frontier pause after a rate-limited search page
            identity_pool_size: int = 20
            output_path: str                           # JSONL dataset
            summary_path: str                          # run summary JSON
        """
        kw = {_KEY_ALIASES.get(k, k): v for k, v in dict(kwargs or {}).items()}

        input_path = kw.pop("input_path", None) or os.getenv(INPUT_ENV_VAR, "").strip() or None
        merged: dict[str, Any] = {}
        if input_path:
            doc = load_input_file(str(input_path))
            merged.update({_KEY_ALIASES.get(k, k): v for k, v in doc.items()})
        merged.update({k: v for k, v in kw.items() if v is not None})

        try:
            settings = cls(
                start_urls=_parse_start_urls(merged.get("start_urls")),
                search_keywords=_parse_keywords(merged.get("search_keywords")),
                search_location=str(merged.get("search_location") or "").strip(),
                split_search_by_location=truthy(merged.get("split_search_by_location")),
                target_country=str(merged.get("target_country") or "").strip().lower(),
                date_posted=_parse_date_posted(merged.get("date_posted")),
                max_items=int(merged.get("max_items", 200)),
                scrape_job_details=truthy(merged.get("scrape_job_details", True)),
                scrape_company=truthy(merged.get("scrape_company", True)),
                proxy_urls=_parse_proxy_config(merged.get("proxy_config")),
                max_concurrency=int(merged.get("max_concurrency", 3)),
                max_request_retries=int(merged.get("max_request_retries", 5)),
                company_max_retries=int(merged.get("company_max_retries", 4)),
                request_timeout=float(merged.get("request_timeout", 30.0)),
                min_delay=float(merged.get("min_delay", 0.3)),
                max_delay=float(merged.get("max_delay", 0.8)),
                rate_limit_pause=float(merged.get("rate_limit_pause", 5.0)),
                identity_pool_size=int(merged.get("identity_pool_size", 20)),
                output_path=_optional_str(merged.get("output_path")),
                summary_path=_optional_str(merged.get("summary_path")),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid crawler input: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def load_input_file(path: str) -> dict[str, Any]:
    """Read a JSON or YAML (by extension) input document into a dict."""
    try:
        with open(path, encoding="utf-8") as f:
            if path.lower().endswith((".yaml", ".yml")):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"jobs_crawler input file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"jobs_crawler input file is invalid JSON: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"jobs_crawler input file is invalid YAML: {path}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"jobs_crawler input file must contain an object: {path}")
    return data


def _optional_str(value: Any) -> str | None:
    s = str(value or "").strip()
    return s or None


def _parse_start_urls(value: Any) -> list[str]:
    """
    Accepts:
      - ["https://www.linkedin.com/jobs/search/?keywords=...", ...]
      - [{"url": "..."}, ...]
      - a single URL string
    """
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError("'start_urls' must be a list of URLs or {\"url\": ...} objects.")
    out: list[str] = []
    for i, item in enumerate(value):
        if isinstance(item, dict):
            item = item.get("url")
        if item is None:
            continue
        if not isinstance(item, str):
            raise ConfigError(f"start_urls[{i}] must be a string or an object with 'url'.")
        if item.strip():
            out.append(item.strip())
    return out


def _parse_keywords(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        raise ConfigError("'search_keywords' must be a list of strings.")
    return [str(v).strip() for v in value if str(v).strip()]


def _parse_date_posted(value: Any) -> str:
    token = str(value or "").strip()
    if not token:
        return ""
    token = DATE_POSTED_ALIASES.get(token.lower(), token)
    if not _DATE_POSTED_RE.match(token):
        raise ConfigError(
            f"Invalid 'date_posted' {value!r}: use r<seconds> or one of {sorted(DATE_POSTED_ALIASES)}."
        )
    return token


def _parse_proxy_config(value: Any) -> list[str]:
    """
    Accepts {"proxy_urls": [...]} / {"proxyUrls": [...]}, a list of URLs, or a
    single URL string. Hosted-platform proxy groups are not available here.
    """
    if not value:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, dict):
        urls = value.get("proxy_urls") or value.get("proxyUrls") or []
        if not urls and (value.get("useApifyProxy") or value.get("apifyProxyGroups")):
            LOG.warning("Platform proxy groups are not supported; running without a proxy.")
        value = urls
    if not isinstance(value, list):
        raise ConfigError("'proxy_config' must be a URL, a list of URLs or {\"proxy_urls\": [...]}.")
    return [str(u).strip() for u in value if str(u).strip()]


def _validate_settings(s: CrawlSettings) -> None:
    if not s.start_urls and not s.search_keywords:
        raise ConfigError(
            'Provide at least one LinkedIn search URL in "startUrls" or keywords in "searchKeywords".'
        )
    if s.max_items <= 0:
        raise ConfigError("'max_items' must be >= 1.")
    if s.max_concurrency <= 0:
        raise ConfigError("'max_concurrency' must be >= 1.")
    if s.max_request_retries < 0 or s.company_max_retries < 0:
        raise ConfigError("Retry limits cannot be negative.")
    if s.request_timeout <= 0:
        raise ConfigError("'request_timeout' must be > 0.")
    if s.min_delay < 0 or s.max_delay < 0:
        raise ConfigError("Delays cannot be negative.")
    if s.rate_limit_pause < 0:
        raise ConfigError("'rate_limit_pause' cannot be negative.")
    if s.identity_pool_size <= 0:
        raise ConfigError("'identity_pool_size' must be >= 1.")
    if s.split_search_by_location and s.target_country and s.target_country not in COUNTRY_CITIES:
        raise ConfigError(
            f"Unknown 'target_country' {s.target_country!r}; choose one of: {', '.join(sorted(COUNTRY_CITIES))}."
        )
