# modules/jobs_crawler/lib/parsers.py
"""
HTML parsers for the three LinkedIn guest page types.

  search results  /jobs-guest/jobs/api/seeMoreJobPostings/search  -> [JobSummary]
  job detail      /jobs-guest/jobs/api/jobPosting/<id>           -> JobDetail
  company page    /company/<slug>                                 -> CompanyProfile

Selectors follow LinkedIn's public markup, with looser fallbacks for the
variants it rotates through. Missing fields stay None; parsers never raise on
unexpected markup beyond what BeautifulSoup itself raises.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib
from bs4.element import Tag

from .models import CompanyProfile, JobDetail, JobSummary, PostalAddress
from .urls import extract_job_id, extract_tracking_params, normalize_url

LOG = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"([\d,]+)")
_APPLICANTS_RE = re.compile(r"([\d,]+)\s*applicants?", re.I)
_QUOTED_URL_RE = re.compile(r'"(https?:[^"]+)"')
_WS_RE = re.compile(r"\s+")


# -----------------------------------------------------------------------------
# Login-wall detection
# -----------------------------------------------------------------------------
class LoginWallDetector:
    """
    Heuristic for "the site refused to show this page to a guest".

    Public pages always carry /login links for their sign-in buttons, so pages
    with real content are never flagged. Tune `short_page_threshold` or swap
    the detector entirely when the site's markup changes.
    """

    markers = ("authwall", "sign-in-modal", "uas-login")

    def __init__(self, short_page_threshold: int = 5000):
        self.short_page_threshold = int(short_page_threshold)

    def has_content(self, soup: BeautifulSoup) -> bool:
        return bool(
            soup.select_one("div.show-more-less-html__markup, div.description__text")
            or soup.select_one("li.description__job-criteria-item")
            or soup.select_one("section.core-section-container")
            or soup.find("dt")
        )

    def __call__(self, markup: str, status_code: int, soup: BeautifulSoup | None = None) -> bool:
        if status_code in (401, 403):
            return True
        markup = markup or ""
        soup = soup if soup is not None else _soup(markup)
        if self.has_content(soup):
            return False
        if any(m in markup for m in self.markers):
            return True
        return len(markup) < self.short_page_threshold and "/login" in markup


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------
class LinkedInParser:
    """Stateless parser; safe to share between threads."""

    def __init__(self, login_wall: LoginWallDetector | None = None):
        self.login_wall = login_wall or LoginWallDetector()

    def is_blocked(self, markup: str, status_code: int) -> bool:
        return self.login_wall(markup, status_code)

    # ---- search results ----
    def parse_search_results(self, markup: str) -> list[JobSummary]:
        soup = _soup(markup)
        jobs: list[JobSummary] = []
        for card in soup.find_all("li"):
            try:
                job = self._parse_card(card)
            except Exception as e:  # one bad card must not sink the page
                LOG.debug("Error parsing card: %s", e)
                continue
            if job is not None:
                jobs.append(job)
        return jobs

    def _parse_card(self, card: Tag) -> JobSummary | None:
        raw_link = (
            _attr(card.select_one("a.base-card__full-link"), "href")
            or _attr(card.select_one('a[data-tracking-control-name*="search-card"]'), "href")
            or _attr(card.find("a"), "href")
        )
        job_id = extract_job_id(raw_link)
        if not job_id:
            return None
        tracking_id, ref_id = extract_tracking_params(raw_link)

        title = _text(card.select_one("h3.base-search-card__title")) or _text(card.find("h3"))
        company_name = (
            _text(card.select_one("h4.base-search-card__subtitle a"))
            or _text(card.select_one("h4.base-search-card__subtitle"))
            or _text(card.find("h4"))
        )
        if not title and not company_name:
            return None

        first_img = card.find("img")
        logo = (
            _attr(card.select_one("img[data-delayed-url]"), "data-delayed-url")
            or _attr(card.select_one("img.artdeco-entity-image"), "src")
            or _attr(first_img, "data-delayed-url")
            or _attr(first_img, "src")
        )
        time_el = card.find("time")
        posted_at = _attr(time_el, "datetime") or _text(time_el)

        return JobSummary(
            job_id=job_id,
            link=normalize_url(raw_link),
            tracking_id=tracking_id,
            ref_id=ref_id,
            title=title or "N/A",
            company_name=company_name or "N/A",
            company_url=normalize_url(_attr(card.select_one("h4.base-search-card__subtitle a"), "href")),
            company_logo=logo,
            location=_text(card.select_one("span.job-search-card__location")) or "N/A",
            salary_info=[t for t in (_text(s) for s in card.select("span.job-search-card__salary-info")) if t],
            posted_at=posted_at or None,
            benefits=[t for t in (_text(s) for s in card.select("span.result-benefits__text")) if t],
        )

    # ---- job detail ----
    def parse_job_detail(self, markup: str) -> JobDetail:
        soup = _soup(markup)
        fields: dict[str, Any] = {}

        desc = self._description_element(soup)
        if desc is not None:
            fields["description_html"] = desc.decode_contents().strip() or None
            fields["description_text"] = desc.get_text().strip() or None

        fields.update(self._criteria(soup))

        applicants_text = (
            _text(soup.select_one("span.num-applicants__caption"))
            or _text(soup.find("figcaption"))
            or _first_text_matching(soup, re.compile(r"applicants?", re.I))
        )
        m = _APPLICANTS_RE.search(applicants_text) or _DIGITS_RE.search(applicants_text)
        if m:
            fields["applicants_count"] = m.group(1).replace(",", "")

        apply_link = _attr(soup.select_one("a.apply-button"), "href") or _attr(
            soup.select_one('a[data-tracking-control-name*="apply"]'), "href"
        )
        if not apply_link:
            # Off-site apply URLs are embedded as a quoted string inside code#applyUrl.
            code = soup.select_one("code#applyUrl")
            m = _QUOTED_URL_RE.search(code.decode_contents() if code else "")
            if m:
                apply_link = m.group(1)
        fields["apply_url"] = normalize_url(apply_link) if apply_link else ""

        fields["salary"] = next(
            (
                t
                for t in (
                    _text(soup.select_one(sel))
                    for sel in (
                        "div.salary.compensation__salary",
                        "div.compensation__salary",
                        "span.compensation__salary",
                        "div.compensation__range",
                        "div.compensation__salary-range",
                    )
                )
                if t
            ),
            "",
        )

        fields.update(self._poster(soup))
        return JobDetail(**fields)

    def _description_element(self, soup: BeautifulSoup) -> Tag | None:
        for sel in (
            "div.show-more-less-html__markup",
            "div.description__text",
            'div[class*="show-more-less-html__markup"]',
            '[class*="description__text"]',
        ):
            el = soup.select_one(sel)
            if el is not None and len(el.get_text().strip()) >= 50:
                return el
        return soup.select_one('[class*="description"] > section > div, [class*="description"] section div')

    def _criteria(self, soup: BeautifulSoup) -> dict[str, str]:
        out: dict[str, str] = {}
        items = soup.select(
            'ul.description__job-criteria-list li, [class*="_job-criteria-list"] li, [class*="job-criteria"] li'
        ) or soup.select("li.description__job-criteria-item")
        for item in items:
            label = (
                _text(item.select_one("h3.description__job-criteria-subheader"))
                or _text(item.find(["h3", "h4"]))
            ).lower()
            spans = item.find_all("span")
            value = _text(item.select_one("span.description__job-criteria-text")) or (
                _text(spans[-1]) if spans else ""
            )
            if not value or len(value) > 300:
                continue
            if "seniority" in label or "experience" in label:
                out["seniority_level"] = value
            elif "employment" in label or "job type" in label:
                out["employment_type"] = value
            elif "function" in label:
                out["job_function"] = value
            elif "industr" in label:
                out["industries"] = value
        return out

    def _poster(self, soup: BeautifulSoup) -> dict[str, str | None]:
        card = soup.select_one(
            'div.message-the-recruiter, div.base-main-card, [class*="recruiter"], [class*="poster"]'
        )
        if card is None:
            return {}
        img = card.find("img")
        link = _attr(card.find("a"), "href")
        return {
            "job_poster_name": _text(card.select_one("h3.base-main-card__title"))
            or _text(card.select_one("h4.message-the-recruiter__title"))
            or None,
            "job_poster_title": _text(card.select_one("h4.base-main-card__subtitle"))
            or _text(card.select_one("p.message-the-recruiter__headline"))
            or None,
            "job_poster_photo": _attr(img, "data-delayed-url") or _attr(img, "src") or None,
            "job_poster_profile_url": normalize_url(link) if link else None,
        }

    # ---- company page ----
    def parse_company_page(self, markup: str) -> CompanyProfile:
        """
        Sources, richest first: JSON-LD Organization, the about-us section,
        <dt>/<dd> pairs, then the meta description.
        """
        soup = _soup(markup)
        c: dict[str, Any] = {}

        org = _json_ld_organization(soup)
        if org:
            c["description"] = org.get("description") or None
            c["slogan"] = org.get("slogan") or None
            c["website"] = org.get("sameAs") or None
            c["address"] = _json_ld_address(org.get("address"))
            employees = org.get("numberOfEmployees")
            if isinstance(employees, dict):
                employees = employees.get("value")
            if employees:
                c["employees_count"] = _to_int(str(employees))

        if not c.get("description"):
            about = soup.select_one('[data-test-id="about-us"]')
            el = (
                about.select_one("p.break-words")
                if about is not None
                else soup.select_one("section.core-section-container p.break-words") or soup.select_one("p.break-words")
            )
            text = _text(el)
            if len(text) > 20:
                c["description"] = text

        if not c.get("website"):
            link = _attr(soup.select_one('a[data-tracking-control-name="about_website"]'), "href") or _attr(
                soup.select_one('dd a[rel*="noopener"]'), "href"
            )
            if link:
                c["website"] = unwrap_redirect(link)

        if not c.get("employees_count"):
            staff = _text(soup.select_one('a[data-tracking-control-name="about_employees"]')) or next(
                (t for t in (_text(dd) for dd in soup.find_all("dd")) if re.search("employees", t, re.I)), ""
            )
            m = _DIGITS_RE.search(staff)
            if m:
                c["employees_count"] = _to_int(m.group(1))

        for dt in soup.find_all("dt"):
            label = _text(dt).lower()
            dd = dt.find_next_sibling("dd")
            value = _WS_RE.sub(" ", _text(dd))
            if not value or len(value) > 300:
                continue
            if "industr" in label:
                c.setdefault("industry", value)
            elif "specialt" in label:
                c.setdefault("specialties", value)
            elif "type" in label:
                c.setdefault("type", value)
            elif "founded" in label:
                c.setdefault("founded", value)
            elif "headquarters" in label:
                c.setdefault("headquarters", value)
            elif "company size" in label and not c.get("employees_count"):
                m = _DIGITS_RE.search(value)
                if m:
                    c["employees_count"] = _to_int(m.group(1))

        if not c.get("address") and c.get("headquarters"):
            parts = re.split(r",\s*", c["headquarters"])
            c["address"] = PostalAddress(
                address_locality=parts[0] or None,
                address_region=parts[1] if len(parts) > 1 else None,
                address_country=parts[-1] or None,
            )

        if not c.get("slogan"):
            c["slogan"] = (
                _text(soup.select_one('p.top-card-layout__headline, [class*="org-top-card-summary__tagline"]'))
                or None
            )

        if not c.get("description"):
            # "Company | N followers on LinkedIn. Tagline | Description..."
            meta = _attr(soup.select_one('meta[name="description"]'), "content")
            m = re.search(r"\|\s*(.+)", meta)
            if m and len(m.group(1).strip()) > 50:
                c["description"] = m.group(1).strip()

        return CompanyProfile(**c)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "html5lib")


def _text(el: Tag | None) -> str:
    return el.get_text().strip() if el is not None else ""


def _attr(el: Tag | None, name: str) -> str:
    if el is None:
        return ""
    val = el.get(name)
    if isinstance(val, list):
        val = " ".join(val)
    return (val or "").strip()


def _first_text_matching(soup: BeautifulSoup, pattern: re.Pattern[str]) -> str:
    # Innermost element whose text matches, so page-level wrappers don't win.
    for node in soup.find_all(string=pattern):
        parent = node.parent
        if parent is not None and parent.name not in ("script", "style"):
            return _text(parent)
    return ""


def _to_int(s: str) -> int | None:
    try:
        return int(s.replace(",", ""))
    except ValueError:
        return None


def _json_ld_organization(soup: BeautifulSoup) -> dict[str, Any] | None:
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or "{}")
        except ValueError:
            continue
        candidates: list[Any] = []
        if isinstance(data, dict):
            graph = data.get("@graph")
            if isinstance(graph, list):
                candidates.extend(graph)
            candidates.append(data)
        elif isinstance(data, list):
            candidates.extend(data)
        for obj in candidates:
            if isinstance(obj, dict) and obj.get("@type") == "Organization":
                return obj
    return None


def _json_ld_address(addr: Any) -> PostalAddress | None:
    if not isinstance(addr, dict):
        return None
    if not (addr.get("streetAddress") or addr.get("addressLocality") or addr.get("addressRegion")):
        return None
    country = addr.get("addressCountry")
    if isinstance(country, dict):
        country = country.get("name") or country.get("@id")
    return PostalAddress(
        street_address=addr.get("streetAddress") or None,
        address_locality=addr.get("addressLocality") or None,
        address_region=addr.get("addressRegion") or None,
        postal_code=addr.get("postalCode") or None,
        address_country=country or None,
    )


def unwrap_redirect(url: str) -> str:
    """linkedin.com/redir/redirect?url=https%3A%2F%2Fstripe.com&... -> https://stripe.com"""
    if not url or "/redir/redirect" not in url:
        return url
    target = parse_qs(urlsplit(url.replace("&amp;", "&")).query).get("url")
    return target[0] if target else url
