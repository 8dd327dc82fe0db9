# tests/test_cli.py
import json

import pytest
import yaml
from linkedin_fakes import card_html, job_id_for

from service import cli
from service import logging_utils as L


@pytest.fixture
def patched_site(fake_site, monkeypatch):
    """Route the crawler's default HttpClient to the scripted site."""
    from modules.jobs_crawler.lib import engine

    fake_site.search[("python", "Remote", 0)] = [card_html(job_id_for(n)) for n in (1, 2, 3)]
    monkeypatch.setattr(engine, "HttpClient", lambda **kw: fake_site)
    return fake_site


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "input.yaml"
    path.write_text(
        yaml.safe_dump({
            "searchKeywords": ["python"],
            "searchLocation": "Remote",
            "maxItems": 5,
            "scrapeCompany": False,
            "min_delay": 0,
            "max_delay": 0,
        }),
        encoding="utf-8",
    )
    return path


def _activity_events():
    with open(L.get_activity_log_path(), encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_crawl_command_runs_and_prints_meta(patched_site, input_file, tmp_path, capsys):
    out = tmp_path / "jobs.jsonl"
    rc = cli.main(["crawl", "--input", str(input_file), "--output", str(out)])
    assert rc == 0

    stdout, _ = capsys.readouterr()
    assert "SUCCESS: Scraped 3 jobs" in stdout
    assert '"total_scraped": 3' in stdout
    assert len(out.read_text(encoding="utf-8").splitlines()) == 3
    assert len(patched_site.calls_to("/jobPosting/")) == 3

    events = _activity_events()
    assert any(e.get("event") == "cli_run" and e.get("module") == "modules.jobs_crawler" for e in events)


def test_crawl_flags_override_input(patched_site, input_file, capsys):
    rc = cli.main(["crawl", "--input", str(input_file), "--max-items", "2"])
    assert rc == 0
    stdout, _ = capsys.readouterr()
    assert "SUCCESS: Scraped 2 jobs" in stdout


def test_crawl_without_searches_is_config_error(capsys):
    rc = cli.main(["crawl"])
    assert rc == 2
    _, stderr = capsys.readouterr()
    assert "CONFIG ERROR" in stderr


def test_run_unknown_module_fails(capsys):
    rc = cli.main(["run", "modules.does_not_exist"])
    assert rc == 1
    _, stderr = capsys.readouterr()
    assert "FAILURE" in stderr
    with open(L.get_error_log_path(), encoding="utf-8") as f:
        errors = [json.loads(line) for line in f]
    assert errors[-1]["where"] == "cli.run"


def test_run_module_with_kwargs(patched_site, input_file, capsys):
    rc = cli.main(["run", "modules.jobs_crawler", "--kwargs", f"input_path={input_file}", "max_items=1", "--print-meta"])
    assert rc == 0
    stdout, _ = capsys.readouterr()
    assert "SUCCESS: Scraped 1 jobs" in stdout


def test_validate_input(input_file, tmp_path, capsys):
    assert cli.main(["validate-input", "--input", str(input_file)]) == 0
    stdout, _ = capsys.readouterr()
    assert "OK: input is valid (1 searches, max_items=5)" in stdout

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"maxItems": 5}), encoding="utf-8")
    assert cli.main(["validate-input", "--input", str(bad)]) == 2
    _, stderr = capsys.readouterr()
    assert "input invalid" in stderr


def test_list_countries(capsys):
    assert cli.main(["list-countries"]) == 0
    stdout, _ = capsys.readouterr()
    assert "| usa" in stdout
    assert "| uae" in stdout
    assert "COUNTRY" in stdout
