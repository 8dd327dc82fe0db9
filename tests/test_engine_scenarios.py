# tests/test_engine_scenarios.py
"""
End-to-end crawls against the scripted FakeSite: seeds -> search -> detail ->
company -> sink, with every wait collapsed to zero.
"""

import json

import pytest
from linkedin_fakes import card_html, job_id_for

from modules.jobs_crawler.lib.backoff import RetryPolicy
from modules.jobs_crawler.lib.cities import COUNTRY_CITIES
from modules.jobs_crawler.lib.engine import Crawler, run_crawl
from modules.jobs_crawler.lib.sink import CollectingSink

START_URL = "https://www.linkedin.com/jobs/search/?keywords=python&location=Remote"


def _cards(numbers, **kw):
    return [card_html(job_id_for(n), **kw) for n in numbers]


def _crawl(settings, fake_site, fast_policy):
    sink = CollectingSink()
    summary = run_crawl(settings, fetcher=fake_site, sink=sink, policy=fast_policy)
    return summary, sink


# ----------------------------------------------------------------------
# Summary-only crawl
# ----------------------------------------------------------------------
def test_single_start_url_summary_only(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards(range(1, 31))
    settings = make_settings(start_urls=[START_URL], max_items=25, scrape_job_details=False)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 25
    assert len(sink) == 25
    assert len(fake_site.search_calls()) == 1
    assert fake_site.calls_to("/jobPosting/") == []
    assert fake_site.calls_to("/company/") == []
    for row in sink.rows:
        assert row["title"] == "Software Engineer"
        assert row["description_text"] is None
        assert row["company_description"] is None
        assert row["company_address"] is None
        assert row["input_url"] == START_URL


# ----------------------------------------------------------------------
# Overlapping searches
# ----------------------------------------------------------------------
def test_overlapping_searches_push_each_job_once(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards(range(1, 11))
    fake_site.search[("django", "Remote", 0)] = _cards(range(1, 16))
    settings = make_settings(search_keywords=["python", "django"], max_items=100)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 15
    ids = [r["id"] for r in sink.rows]
    assert len(ids) == len(set(ids)) == 15
    assert summary.stats["duplicates_skipped"] == 10
    # both keywords paged through the 100-item budget: 4 pages each
    assert len(fake_site.search_calls()) == 8
    assert len(fake_site.calls_to("/jobPosting/")) == 15
    assert len(fake_site.calls_to("/company/acme")) == 1
    assert all(r["company_employees_count"] == 1234 for r in sink.rows)


# ----------------------------------------------------------------------
# Company join under rate limiting
# ----------------------------------------------------------------------
def test_company_rate_limited_twice_then_shared(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1, 2, 3])
    fake_site.company_statuses["acme"] = [429, 429, 200]
    settings = make_settings()

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 3
    assert len(fake_site.calls_to("/company/acme")) == 3
    assert len(fake_site.retired) == 2
    companies = [
        {k: v for k, v in row.items() if k.startswith("company_") and k not in ("company_name", "company_logo")}
        for row in sink.rows
    ]
    assert companies[0]["company_description"].startswith("Acme builds rockets")
    assert companies[0]["company_address"]["address_locality"] == "Springfield"
    assert companies[0] == companies[1] == companies[2]
    assert summary.stats["company_retries"] == 2


def test_company_permanently_blocked_degrades(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1, 2, 3])
    fake_site.company_statuses["acme"] = [999]
    settings = make_settings()

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 3
    # first attempt plus four rotations
    assert len(fake_site.calls_to("/company/acme")) == 5
    assert len(fake_site.retired) == 4
    assert all(r["company_description"] is None for r in sink.rows)
    assert all(r["description_text"] for r in sink.rows)
    assert summary.stats["companies_tombstoned"] == 1


def test_company_login_wall_degrades(fake_site, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1, 2])
    fake_site.login_walls.add("/company/")
    settings = make_settings()

    summary, sink = _crawl(settings, fake_site, RetryPolicy.immediate(company_max_retries=1))

    assert summary.total_scraped == 2
    assert len(fake_site.calls_to("/company/acme")) == 2
    assert all(r["company_website"] is None for r in sink.rows)


# ----------------------------------------------------------------------
# Split by location
# ----------------------------------------------------------------------
def test_split_search_stops_paging_at_budget(fake_site, fast_policy, make_settings, monkeypatch):
    cities = ["Alpha", "Bravo", "Charlie", "Delta", "Echo"]
    monkeypatch.setitem(COUNTRY_CITIES, "testland", cities)
    for i, city in enumerate(cities):
        fake_site.search[("python", city, 0)] = _cards(range(i * 100, i * 100 + 8))
        fake_site.search[("python", city, 25)] = _cards(range(i * 100 + 50, i * 100 + 58))
    settings = make_settings(split_search_by_location=True, target_country="testland", max_items=40)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    searches = fake_site.search_calls()
    assert sorted(p["location"] for p in searches) == sorted(cities)
    assert all(p["start"] == "0" for p in searches)
    assert len(fake_site.calls_to("/jobPosting/")) == 40
    assert summary.total_scraped == 40
    assert {r["label"] for r in sink.rows} == {f"python - {c}" for c in cities}


def test_split_with_unknown_country_falls_back_to_plain_search(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    settings = make_settings(split_search_by_location=True, max_items=5)

    summary, _ = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 1
    assert [p["location"] for p in fake_site.search_calls()] == ["Remote"]


# ----------------------------------------------------------------------
# Transport failures and transient statuses
# ----------------------------------------------------------------------
def test_network_errors_are_retried(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    fake_site.network_failures[f"/jobPosting/{job_id_for(1)}"] = 2
    settings = make_settings()

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 1
    assert len(fake_site.calls_to("/jobPosting/")) == 3
    assert sink.rows[0]["description_text"]
    assert summary.stats["network_errors"] == 2


def test_network_errors_past_retry_cap_push_partial_row(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    fake_site.network_failures["/jobPosting/"] = 10
    settings = make_settings(max_request_retries=1)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 1
    assert len(fake_site.calls_to("/jobPosting/")) == 2
    assert sink.rows[0]["description_text"] is None
    assert sink.rows[0]["title"] == "Software Engineer"


def test_search_network_failure_gives_up_cleanly(fake_site, fast_policy, make_settings):
    fake_site.network_failures["seeMoreJobPostings"] = 100
    settings = make_settings(max_request_retries=2)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 0
    assert len(sink) == 0
    assert len(fake_site.search_calls()) == 3
    assert summary.stats["failed_requests"] == 1


def test_detail_rate_limit_then_success(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    fake_site.detail_statuses[job_id_for(1)] = [429, 200]
    settings = make_settings(scrape_company=False)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 1
    assert len(fake_site.calls_to("/jobPosting/")) == 2
    assert fake_site.retired == []
    assert sink.rows[0]["employment_type"] == "Full-time"


def test_detail_always_rate_limited_pushes_summary(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    fake_site.detail_statuses[job_id_for(1)] = [429]
    settings = make_settings(max_request_retries=3)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 1
    assert len(fake_site.calls_to("/jobPosting/")) == 4
    assert sink.rows[0]["description_text"] is None
    assert fake_site.calls_to("/company/") == []


def test_detail_login_wall_pushes_summary_only(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1, 2])
    fake_site.login_walls.add("/jobPosting/")
    settings = make_settings()

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 2
    assert all(r["seniority_level"] is None for r in sink.rows)
    assert fake_site.calls_to("/company/") == []


def test_rate_limited_search_page_is_dropped(fake_site, fast_policy, make_settings):
    fake_site.search[("python", "Remote", 0)] = _cards([1])
    fake_site.search_statuses[("python", "Remote", 0)] = [999]
    fake_site.search[("python", "Remote", 25)] = _cards([2])
    settings = make_settings(max_items=50, scrape_job_details=False)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert [r["id"] for r in sink.rows] == [job_id_for(2)]
    assert len(fake_site.search_calls()) == 2
    assert summary.stats["dropped_rate_limited"] == 1


# ----------------------------------------------------------------------
# Outputs
# ----------------------------------------------------------------------
def test_outputs_written_to_disk(fake_site, fast_policy, make_settings, tmp_path):
    fake_site.search[("python", "Remote", 0)] = _cards([1, 2], salary=["$100K", "$120K"])
    out = tmp_path / "out" / "jobs.jsonl"
    summary_file = tmp_path / "out" / "summary.json"
    settings = make_settings(output_path=str(out), summary_path=str(summary_file))

    summary = Crawler(settings, fetcher=fake_site, policy=fast_policy).run()

    rows = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == summary.total_scraped == 2
    assert rows[0]["salary"] == "$100K – $120K"
    assert rows[0]["company_address"]["type"] == "PostalAddress"

    saved = json.loads(summary_file.read_text(encoding="utf-8"))
    assert saved["total_scraped"] == 2
    assert saved["search_keywords"] == ["python"]
    assert saved["start_urls"] == 0
    assert saved["split_search_by_location"] is False
    assert saved["completed_at"]
    assert saved["stats"]["pushed"] == 2


def test_no_valid_seeds_completes_empty(fake_site, fast_policy, make_settings):
    settings = make_settings(start_urls=["not a url"])

    summary, sink = _crawl(settings, fake_site, fast_policy)

    assert summary.total_scraped == 0
    assert fake_site.calls == []


@pytest.mark.parametrize("concurrency", [2, 4])
def test_parallel_fetching_keeps_exactly_once(fake_site, fast_policy, make_settings, concurrency):
    fake_site.search[("python", "Remote", 0)] = _cards(range(1, 21))
    fake_site.search[("django", "Remote", 0)] = _cards(range(11, 31), company="Globex", company_slug="globex")
    settings = make_settings(search_keywords=["python", "django"], max_items=100, max_concurrency=concurrency)

    summary, sink = _crawl(settings, fake_site, fast_policy)

    ids = [r["id"] for r in sink.rows]
    assert len(ids) == len(set(ids)) == 30
    assert summary.total_scraped == 30
    assert len(fake_site.calls_to("/company/acme")) == 1
    assert len(fake_site.calls_to("/company/globex")) == 1
