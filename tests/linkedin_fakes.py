# tests/linkedin_fakes.py
"""
Generated LinkedIn guest markup plus a scripted fake of the site.
Shapes mirror the real guest pages closely enough for the parsers' selectors.
"""

import json
import threading
from collections import Counter
from urllib.parse import parse_qsl, urlsplit

from modules.jobs_crawler.lib.http_client import BaseFetcher, NetworkError, PageResponse


# ---------------------------------------------------------------------
# HTML fixture builders (shapes match LinkedIn's guest markup)
# ---------------------------------------------------------------------
def job_id_for(n: int) -> str:
    return str(4_000_000_000 + n)


def card_html(
    job_id: str,
    *,
    title: str = "Software Engineer",
    company: str = "Acme",
    company_slug: str | None = "acme",
    location: str = "Remote",
    posted: str = "2025-01-01",
    salary: list[str] | None = None,
) -> str:
    company_el = (
        f'<a class="hidden-nested-link" href="https://www.linkedin.com/company/{company_slug}?trk=public_jobs">{company}</a>'
        if company_slug
        else company
    )
    salary_el = "".join(f'<span class="job-search-card__salary-info">{s}</span>' for s in salary or [])
    return f"""
<li>
  <div class="base-card base-search-card job-search-card">
    <a class="base-card__full-link" href="https://www.linkedin.com/jobs/view/software-engineer-at-{company.lower()}-{job_id}?refId=ref{job_id}&amp;trackingId=trk{job_id}">
      <span class="sr-only">{title}</span>
    </a>
    <div class="base-search-card__logo"><img class="artdeco-entity-image" data-delayed-url="https://media.licdn.example/{company.lower()}.png"></div>
    <div class="base-search-card__info">
      <h3 class="base-search-card__title">{title}</h3>
      <h4 class="base-search-card__subtitle">{company_el}</h4>
      <div class="base-search-card__metadata">
        <span class="job-search-card__location">{location}</span>
        {salary_el}
        <time class="job-search-card__listdate" datetime="{posted}">1 day ago</time>
      </div>
    </div>
  </div>
</li>"""


def search_page_html(cards: list[str]) -> str:
    return "\n".join(cards)


def job_detail_html(job_id: str, *, seniority: str = "Mid-Senior level", salary: str = "") -> str:
    salary_el = f'<div class="salary compensation__salary">{salary}</div>' if salary else ""
    return f"""
<section class="core-section-container top-card-layout">
  <h2 class="top-card-layout__title">Software Engineer</h2>
  <span class="num-applicants__caption">87 applicants</span>
  <code id="applyUrl" style="display: none"><!--"https://jobs.acme.example/apply/{job_id}"--></code>
</section>
{salary_el}
<section class="description">
  <div class="show-more-less-html__markup">
    <p>We are looking for an engineer to build reliable distributed systems for job {job_id}.</p>
  </div>
  <ul class="description__job-criteria-list">
    <li class="description__job-criteria-item">
      <h3 class="description__job-criteria-subheader">Seniority level</h3>
      <span class="description__job-criteria-text">{seniority}</span>
    </li>
    <li class="description__job-criteria-item">
      <h3 class="description__job-criteria-subheader">Employment type</h3>
      <span class="description__job-criteria-text">Full-time</span>
    </li>
    <li class="description__job-criteria-item">
      <h3 class="description__job-criteria-subheader">Job function</h3>
      <span class="description__job-criteria-text">Engineering</span>
    </li>
    <li class="description__job-criteria-item">
      <h3 class="description__job-criteria-subheader">Industries</h3>
      <span class="description__job-criteria-text">Software Development</span>
    </li>
  </ul>
</section>
<div class="message-the-recruiter">
  <a href="/in/jane-doe"><img data-delayed-url="https://media.licdn.example/jane.jpg"></a>
  <h3 class="base-main-card__title">Jane Doe</h3>
  <h4 class="base-main-card__subtitle">Technical Recruiter</h4>
</div>"""


def company_page_html(slug: str, *, name: str | None = None, employees: int = 1234) -> str:
    name = name or slug.title()
    org = {
        "@context": "http://schema.org",
        "@graph": [
            {"@type": "WebPage", "name": name},
            {
                "@type": "Organization",
                "name": name,
                "description": f"{name} builds rockets, engines and ground systems for customers worldwide.",
                "slogan": "To the moon",
                "sameAs": f"https://{slug}.example",
                "numberOfEmployees": {"@type": "QuantitativeValue", "value": employees},
                "address": {
                    "@type": "PostalAddress",
                    "streetAddress": "1 Main St",
                    "addressLocality": "Springfield",
                    "addressRegion": "IL",
                    "postalCode": "62701",
                    "addressCountry": "US",
                },
            },
        ],
    }
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta name="description" content="{name} | 10,000 followers on LinkedIn.">
  <script type="application/ld+json">{json.dumps(org)}</script>
</head>
<body>
  <section class="core-section-container">
    <dl>
      <dt>Industry</dt><dd>Aerospace</dd>
      <dt>Company size</dt><dd>1,001-5,000 employees</dd>
      <dt>Headquarters</dt><dd>Springfield, IL</dd>
      <dt>Type</dt><dd>Privately Held</dd>
      <dt>Founded</dt><dd>1999</dd>
      <dt>Specialties</dt><dd>Rockets, Engines</dd>
    </dl>
  </section>
</body>
</html>"""


LOGIN_WALL_HTML = """<html><head><title>Sign Up | LinkedIn</title></head>
<body><div class="authwall-join-form">Join now</div><a href="https://www.linkedin.com/login">Sign in</a></body></html>"""


# ---------------------------------------------------------------------
# Scripted fake of the guest site
# ---------------------------------------------------------------------
class FakeSite(BaseFetcher):
    """
    BaseFetcher that serves generated LinkedIn markup.

      search[(keywords, location, start)] -> list of card HTML strings
      search_statuses[(kw, loc, start)]   -> status per attempt (last repeats)
      detail_statuses[job_id]             -> status per attempt (last repeats)
      company_statuses[slug]              -> status per attempt (last repeats)
      network_failures[url_substring]     -> number of NetworkErrors before success
      login_walls                         -> url substrings answered with a 200 login wall

    Thread-safe; records every fetched URL in `calls`.
    """

    def __init__(self):
        self.search: dict[tuple[str, str, int], list[str]] = {}
        self.search_statuses: dict[tuple[str, str, int], list[int]] = {}
        self.detail_statuses: dict[str, list[int]] = {}
        self.company_statuses: dict[str, list[int]] = {}
        self.network_failures: dict[str, int] = {}
        self.login_walls: set[str] = set()
        self.calls: list[str] = []
        self.retired: list[object] = []
        self._counts: Counter = Counter()
        self._lock = threading.Lock()
        self._ident = 0

    # ---- identity ----
    def acquire_identity(self):
        with self._lock:
            self._ident += 1
            return self._ident

    def retire_identity(self, identity):
        with self._lock:
            self.retired.append(identity)

    # ---- fetch ----
    def fetch(self, url, identity=None):
        with self._lock:
            self.calls.append(url)
            attempt = self._counts[url]
            self._counts[url] += 1
            for fragment, failures in self.network_failures.items():
                if fragment in url and attempt < failures:
                    raise NetworkError(f"simulated connection reset for {url}")
            if any(fragment in url for fragment in self.login_walls):
                return PageResponse(200, LOGIN_WALL_HTML)

        path = urlsplit(url).path
        if "seeMoreJobPostings" in path:
            params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
            key = (params.get("keywords", ""), params.get("location", ""), int(params.get("start", "0")))
            status = _scripted(self.search_statuses.get(key), attempt)
            return PageResponse(status, search_page_html(self.search.get(key, [])) if status == 200 else "")

        if "/jobPosting/" in path:
            job_id = path.rstrip("/").rsplit("/", 1)[-1]
            status = _scripted(self.detail_statuses.get(job_id), attempt)
            return PageResponse(status, job_detail_html(job_id) if status == 200 else "")

        if path.startswith("/company/"):
            slug = path.split("/")[2]
            status = _scripted(self.company_statuses.get(slug), attempt)
            return PageResponse(status, company_page_html(slug) if status == 200 else "")

        return PageResponse(404, "")

    # ---- assertions helpers ----
    def calls_to(self, fragment: str) -> list[str]:
        with self._lock:
            return [u for u in self.calls if fragment in u]

    def search_calls(self) -> list[dict[str, str]]:
        return [dict(parse_qsl(urlsplit(u).query, keep_blank_values=True)) for u in self.calls_to("seeMoreJobPostings")]


def _scripted(statuses, attempt):
    if not statuses:
        return 200
    return statuses[min(attempt, len(statuses) - 1)]


