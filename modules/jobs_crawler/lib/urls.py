"""
URL builder for the LinkedIn guest jobs endpoints.

Pure functions only: keywords/location/offset/filters in, fetchable URLs out.
Malformed input never raises here; it yields "" (or None) and the caller
skips that unit.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable, Mapping
from itertools import zip_longest
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from .cities import cities_for
from .crawl_requests import SearchRequest

if TYPE_CHECKING:
    from .config import CrawlSettings

log = logging.getLogger(__name__)

ORIGIN = "https://www.linkedin.com"
GUEST_SEARCH_API = f"{ORIGIN}/jobs-guest/jobs/api/seeMoreJobPostings/search"
GUEST_JOB_POSTING_API = f"{ORIGIN}/jobs-guest/jobs/api/jobPosting"
HUMAN_SEARCH_URL = f"{ORIGIN}/jobs/search/"

# The guest API serves fixed pages of 25 cards.
PAGE_SIZE = 25

# Search-control params that are rebuilt per shard rather than copied as filters.
_SEARCH_CONTROL_PARAMS = frozenset({"keywords", "location", "start", "position", "pageNum", "trk"})

_JOB_ID_RE = re.compile(r"(\d{8,})")
_COMPANY_KEY_RE = re.compile(r"linkedin\.com/company/([^/?#]+)")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# -----------------------------------------------------------------------------
# Search URLs
# -----------------------------------------------------------------------------
def build_search_url(
    keywords: str,
    location: str = "",
    start: int = 0,
    extra_params: Mapping[str, str] | None = None,
) -> str:
    """Guest API search URL for one page (`start` is the card offset)."""
    params: dict[str, str] = {
        "keywords": keywords or "",
        "location": location or "",
        "trk": "public_jobs_jobs-search-bar_search-submit",
        "position": "1",
        "pageNum": "0",
        "start": str(start),
    }
    params.update({str(k): str(v) for k, v in (extra_params or {}).items()})
    return f"{GUEST_SEARCH_API}?{urlencode(params)}"


def build_human_search_url(
    keywords: str,
    location: str = "",
    extra_params: Mapping[str, str] | None = None,
) -> str:
    """Human-readable search URL, reported as `input_url` on every output row."""
    params: dict[str, str] = {"keywords": keywords or "", "location": location or ""}
    params.update({str(k): str(v) for k, v in (extra_params or {}).items()})
    return f"{HUMAN_SEARCH_URL}?{urlencode(params)}"


def to_canonical_fetch_form(url: str | None) -> str:
    """
    Normalize a user-supplied search URL into the guest API endpoint.

    Every query parameter is preserved (last value wins for repeated keys) and
    `start` defaults to 0. Regional hosts are folded into www.linkedin.com.
    Idempotent. Returns "" when the input is not an absolute http(s) URL.
    """
    try:
        parts = urlsplit((url or "").strip())
    except ValueError:
        return ""
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return ""

    params: dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        params[key] = value
    params.setdefault("start", "0")
    return f"{GUEST_SEARCH_API}?{urlencode(params)}"


def query_params(url: str) -> dict[str, str]:
    try:
        return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    except ValueError:
        return {}


def get_start_param(url: str) -> int:
    """Pagination offset of a search URL (0 when absent or unparsable)."""
    raw = query_params(url).get("start") or "0"
    try:
        return int(raw)
    except ValueError:
        return 0


def set_params(url: str, updates: Mapping[str, str]) -> str:
    """Return `url` with the given query params set (replacing existing ones)."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    params: dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        params[key] = value
    params.update({str(k): str(v) for k, v in updates.items()})
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(params), parts.fragment))


def set_start_param(url: str, start: int) -> str:
    return set_params(url, {"start": str(start)})


# -----------------------------------------------------------------------------
# Pagination & sharding
# -----------------------------------------------------------------------------
def pages_needed(max_items: int) -> int:
    return max(1, math.ceil(max_items / PAGE_SIZE))


def paginate(api_url: str, max_items: int, *, label: str = "", input_url: str = "") -> list[SearchRequest]:
    """One SearchRequest per page offset needed to cover `max_items` cards."""
    return [
        SearchRequest(url=set_start_param(api_url, page * PAGE_SIZE), label=label, input_url=input_url)
        for page in range(pages_needed(max_items))
    ]


def build_search_pages(
    keywords: str,
    location: str,
    extra_filters: Mapping[str, str] | None,
    max_items: int,
    *,
    label: str = "",
    input_url: str = "",
) -> list[SearchRequest]:
    base = build_search_url(keywords, location, 0, extra_filters)
    return paginate(base, max_items, label=label, input_url=input_url)


def shard_by_location(keywords: str, country: str) -> list[tuple[str, str]]:
    """
    Split one search into per-city sub-searches.

    Returns [(label, city), ...]; empty when `country` has no catalog entry,
    in which case the caller keeps the single-location path.
    """
    cities = cities_for(country)
    return [(f"{keywords} - {city}" if keywords else city, city) for city in cities]


def seed_requests(settings: CrawlSettings) -> list[SearchRequest]:
    """
    Build the initial SEARCH frontier from the run configuration.

    Start URLs take precedence over keywords. Pages are interleaved across
    bases/shards (every offset-0 page first) so each shard contributes before
    deep pagination begins.
    """
    extra: dict[str, str] = {"f_TPR": settings.date_posted} if settings.date_posted else {}
    split = settings.split_search_by_location and bool(cities_for(settings.target_country))
    if settings.split_search_by_location and not split:
        log.warning(
            "No city catalog for target_country=%r; searching without location split.",
            settings.target_country,
        )

    groups: list[list[SearchRequest]] = []

    if settings.start_urls:
        for raw in settings.start_urls:
            api_url = to_canonical_fetch_form(raw)
            if not api_url:
                log.warning("Skipping malformed start URL: %r", raw)
                continue

            if split:
                params = query_params(api_url)
                keywords = params.get("keywords", "")
                filters = {k: v for k, v in params.items() if k not in _SEARCH_CONTROL_PARAMS}
                filters.update(extra)
                log.info(
                    "Splitting search into %d city-level searches for %r",
                    len(cities_for(settings.target_country)),
                    settings.target_country,
                )
                for label, city in shard_by_location(keywords, settings.target_country):
                    groups.append(
                        build_search_pages(
                            keywords,
                            city,
                            filters,
                            settings.max_items,
                            label=label,
                            input_url=build_human_search_url(keywords, city, extra),
                        )
                    )
            else:
                if extra:
                    api_url = set_params(api_url, extra)
                groups.append(paginate(api_url, settings.max_items, input_url=raw))
    else:
        for keyword in settings.search_keywords:
            if split:
                log.info(
                    "Splitting %r across %d cities in %r",
                    keyword,
                    len(cities_for(settings.target_country)),
                    settings.target_country,
                )
                for label, city in shard_by_location(keyword, settings.target_country):
                    groups.append(
                        build_search_pages(
                            keyword,
                            city,
                            extra,
                            settings.max_items,
                            label=label,
                            input_url=build_human_search_url(keyword, city, extra),
                        )
                    )
            else:
                groups.append(
                    build_search_pages(
                        keyword,
                        settings.search_location,
                        extra,
                        settings.max_items,
                        label=keyword,
                        input_url=build_human_search_url(keyword, settings.search_location, extra),
                    )
                )

    return _interleave(groups)


def _interleave(groups: Iterable[list[SearchRequest]]) -> list[SearchRequest]:
    out: list[SearchRequest] = []
    for batch in zip_longest(*groups):
        out.extend(r for r in batch if r is not None)
    return out


# -----------------------------------------------------------------------------
# Job / company URLs
# -----------------------------------------------------------------------------
def normalize_url(url: str | None) -> str:
    """Make relative and protocol-relative LinkedIn links absolute."""
    if not url:
        return ""
    url = url.strip()
    if url.startswith("//"):
        return f"https:{url}"
    if url.startswith("/"):
        return f"{ORIGIN}{url}"
    if not url.startswith("http"):
        return f"https://{url}"
    return url


def extract_job_id(url: str | None) -> str | None:
    """Numeric job id from /jobs/view/<slug>-<id> or /jobPosting/<id> forms."""
    if not url:
        return None
    m = _JOB_ID_RE.search(url)
    return m.group(1) if m else None


def extract_tracking_params(url: str | None) -> tuple[str | None, str | None]:
    """(trackingId, refId) query params of a job link, if present."""
    if not url:
        return None, None
    params = query_params(urljoin(ORIGIN, url))
    return params.get("trackingId") or None, params.get("refId") or None


def extract_company_key(url: str | None) -> str | None:
    """Company slug: https://www.linkedin.com/company/stripe?trk=x -> 'stripe'."""
    if not url:
        return None
    m = _COMPANY_KEY_RE.search(url)
    return m.group(1) if m else None


def job_detail_url(job_id: str) -> str:
    # Always www: regional subdomains get blocked more aggressively.
    return f"{GUEST_JOB_POSTING_API}/{job_id}"


def company_page_url(key: str) -> str:
    return f"{ORIGIN}/company/{key}"


def format_posted_at(posted_at: str | None) -> str | None:
    """ISO timestamp -> YYYY-MM-DD; anything else is returned unchanged."""
    if not posted_at:
        return None
    date = posted_at.split("T")[0]
    return date if _ISO_DATE_RE.match(date) else posted_at
