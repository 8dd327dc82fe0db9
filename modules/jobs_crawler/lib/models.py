from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class JobSummary:
    """
    Summary wave: one card from a guest search results page.
    `job_id` is the numeric id taken from the job link and is the dedupe key.
    """

    job_id: str
    link: str = ""
    tracking_id: str | None = None
    ref_id: str | None = None
    title: str = "N/A"
    company_name: str = "N/A"
    company_url: str = ""  # linkedin.com/company/<slug>, source of the CompanyKey
    company_logo: str = ""
    location: str = "N/A"
    salary_info: list[str] = field(default_factory=list)
    posted_at: str | None = None
    benefits: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class JobDetail:
    """Detail wave: fields from /jobs-guest/jobs/api/jobPosting/<id>."""

    description_html: str | None = None
    description_text: str | None = None
    seniority_level: str | None = None
    employment_type: str | None = None
    job_function: str | None = None
    industries: str | None = None
    applicants_count: str | None = None
    apply_url: str = ""
    salary: str = ""
    job_poster_name: str | None = None
    job_poster_title: str | None = None
    job_poster_photo: str | None = None
    job_poster_profile_url: str | None = None


@dataclass(frozen=True)
class PostalAddress:
    street_address: str | None = None
    address_locality: str | None = None
    address_region: str | None = None
    postal_code: str | None = None
    address_country: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"type": "PostalAddress", **asdict(self)}


@dataclass(frozen=True)
class CompanyProfile:
    """Company wave: fields from the public /company/<slug> page."""

    description: str | None = None
    slogan: str | None = None
    website: str | None = None
    employees_count: int | None = None
    industry: str | None = None
    specialties: str | None = None
    type: str | None = None
    founded: str | None = None
    headquarters: str | None = None
    address: PostalAddress | None = None

    def field_count(self) -> int:
        return sum(1 for v in asdict(self).values() if v is not None)


@dataclass
class JobRecord:
    """
    Mutable accumulator for one job. Waves arrive in order summary -> detail
    -> company; the record is pushed exactly once, after every requested wave
    has resolved or permanently failed.
    """

    summary: JobSummary
    input_url: str = ""
    label: str = ""
    detail: JobDetail | None = None
    company: CompanyProfile | None = None

    @property
    def job_id(self) -> str:
        return self.summary.job_id


@dataclass
class RunSummary:
    """End-of-run report persisted next to the dataset."""

    total_scraped: int = 0
    start_urls: int = 0
    search_keywords: list[str] = field(default_factory=list)
    split_search_by_location: bool = False
    completed_at: str | None = None
    stats: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_scraped": self.total_scraped,
            "start_urls": self.start_urls,
            "search_keywords": list(self.search_keywords),
            "split_search_by_location": self.split_search_by_location,
            "completed_at": self.completed_at,
            "stats": dict(self.stats),
        }
