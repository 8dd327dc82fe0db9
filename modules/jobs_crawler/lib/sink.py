"""
Result sink: turns finished JobRecords into flat output rows and stores them.

Every row carries every key. Missing scalars are explicit None, list fields
default to [], and `salary` / `apply_url` default to "".
"""

from __future__ import annotations

import json
import os
import threading
from abc import ABC, abstractmethod
from typing import Any

from .models import JobRecord, RunSummary
from .urls import format_posted_at

SALARY_SEPARATOR = " – "


def to_output_row(record: JobRecord) -> dict[str, Any]:
    s = record.summary
    d = record.detail
    c = record.company

    salary = (d.salary if d else "") or SALARY_SEPARATOR.join(x for x in s.salary_info if x)

    def detail(name: str) -> Any:
        return (getattr(d, name) or None) if d else None

    def company(name: str) -> Any:
        return getattr(c, name) if c else None

    address = company("address")
    return {
        "id": s.job_id or None,
        "tracking_id": s.tracking_id,
        "ref_id": s.ref_id,
        "link": s.link or None,
        "title": s.title or None,
        "company_name": s.company_name or None,
        "company_linkedin_url": s.company_url or None,
        "company_logo": s.company_logo or None,
        "location": s.location or None,
        "salary_info": list(s.salary_info),
        "salary": salary or "",
        "posted_at": format_posted_at(s.posted_at),
        "benefits": list(s.benefits),
        "description_html": detail("description_html"),
        "description_text": detail("description_text"),
        "applicants_count": detail("applicants_count"),
        "apply_url": (d.apply_url if d else "") or "",
        "job_poster_name": detail("job_poster_name"),
        "job_poster_title": detail("job_poster_title"),
        "job_poster_photo": detail("job_poster_photo"),
        "job_poster_profile_url": detail("job_poster_profile_url"),
        "seniority_level": detail("seniority_level"),
        "employment_type": detail("employment_type"),
        "job_function": detail("job_function"),
        "industries": detail("industries"),
        "input_url": record.input_url or None,
        "label": record.label or None,
        "company_description": company("description"),
        "company_website": company("website"),
        "company_employees_count": company("employees_count"),
        "company_industry": company("industry"),
        "company_specialties": company("specialties"),
        "company_type": company("type"),
        "company_founded": company("founded"),
        "company_headquarters": company("headquarters"),
        "company_slogan": company("slogan"),
        "company_address": address.as_dict() if address else None,
    }


# -----------------------------------------------------------------------------
# Sinks
# -----------------------------------------------------------------------------
class ResultSink(ABC):
    @abstractmethod
    def push(self, record: JobRecord) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None


class CollectingSink(ResultSink):
    """In-memory sink; keeps both the records and their output rows."""

    def __init__(self) -> None:
        self.records: list[JobRecord] = []
        self.rows: list[dict[str, Any]] = []

    def push(self, record: JobRecord) -> None:
        self.records.append(record)
        self.rows.append(to_output_row(record))

    def __len__(self) -> int:
        return len(self.rows)


class JsonlSink(ResultSink):
    """Append one JSON object per line to `path` (parent dirs created on first push)."""

    def __init__(self, path: str):
        self.path = path
        self.count = 0
        self._fh = None
        self._lock = threading.Lock()

    def push(self, record: JobRecord) -> None:
        line = json.dumps(to_output_row(record), ensure_ascii=False) + "\n"
        with self._lock:
            if self._fh is None:
                parent = os.path.dirname(self.path)
                if parent:
                    os.makedirs(parent, exist_ok=True)
                self._fh = open(self.path, "a", encoding="utf-8")
            self._fh.write(line)
            self._fh.flush()
            self.count += 1

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None


def write_summary(path: str, summary: RunSummary) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary.as_dict(), f, ensure_ascii=False, indent=2)
        f.write("\n")
