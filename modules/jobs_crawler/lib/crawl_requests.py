"""
Fetch request variants routed through the single fetch layer.

Each kind carries its own typed context instead of a loosely-typed payload:

  SearchRequest     one paginated guest-search page
  JobDetailRequest  the detail page of one job, carrying its JobRecord so far
  CompanyRequest    one company page, carrying the job(s) that triggered it

`priority` is the scheduling class (lower runs first): job details drain
before company pages, and both before the search frontier expands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union

from .models import JobRecord


class RequestKind(str, Enum):
    SEARCH = "SEARCH"
    JOB_DETAIL = "JOB_DETAIL"
    COMPANY = "COMPANY"


@dataclass
class SearchRequest:
    kind: ClassVar[RequestKind] = RequestKind.SEARCH
    priority: ClassVar[int] = 2

    url: str
    label: str = ""
    input_url: str = ""

    @property
    def unique_key(self) -> str:
        return self.url


@dataclass
class JobDetailRequest:
    kind: ClassVar[RequestKind] = RequestKind.JOB_DETAIL
    priority: ClassVar[int] = 0

    url: str
    record: JobRecord

    @property
    def unique_key(self) -> str:
        return f"detail-{self.record.job_id}"


@dataclass
class CompanyRequest:
    kind: ClassVar[RequestKind] = RequestKind.COMPANY
    priority: ClassVar[int] = 1

    url: str
    key: str
    passengers: list[JobRecord] = field(default_factory=list)

    @property
    def unique_key(self) -> str:
        return f"company-{self.key}"


CrawlRequest = Union[SearchRequest, JobDetailRequest, CompanyRequest]
