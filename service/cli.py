# service/cli.py
"""
User-facing command-line entrypoints.

Subcommands
-----------
run MODULE [--kwargs k=v ...] [--print-meta]
    - Executes a module ad-hoc via runner.run_module_once(...)
    - Displays a concise success/failure summary

crawl [--input FILE] [--keywords ...] [--start-url ...] [--location L]
      [--max-items N] [--output PATH] [--summary PATH]
    - Runs the jobs crawler directly; flags override the input file

validate-input --input FILE
    - Loads/validates a crawler input document and returns nonzero on error

list-countries
    - Prints the countries available for split-by-location searches

Exit codes: 0 success, 1 failure, 2 configuration error, 130 interrupted.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from modules.jobs_crawler.lib.cities import COUNTRY_CITIES
from modules.jobs_crawler.lib.config import ConfigError, CrawlSettings
from service import logging_utils as L
from service import runner as _runner

LOG = logging.getLogger("service.cli")

CRAWLER_MODULE = "modules.jobs_crawler"


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except ValueError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _now_iso():
    return datetime.now().astimezone().isoformat()


def _crawl_kwargs(args: argparse.Namespace) -> dict[str, Any]:
    kwargs: dict[str, Any] = {}
    if args.input:
        kwargs["input_path"] = args.input
    if args.start_url:
        kwargs["start_urls"] = list(args.start_url)
    if args.keywords:
        kwargs["search_keywords"] = list(args.keywords)
    if args.location is not None:
        kwargs["search_location"] = args.location
    if args.max_items is not None:
        kwargs["max_items"] = args.max_items
    if args.output:
        kwargs["output_path"] = args.output
    if args.summary:
        kwargs["summary_path"] = args.summary
    return kwargs


# ------------------------------ Subcommands ----------------------------------
def cmd_run(args: argparse.Namespace) -> int:
    start_time = time.monotonic()
    kwargs = _parse_kv_pairs(args.kwargs or [])
    LOG.debug("Run module %s with kwargs=%s", args.module, kwargs)
    return _run_and_report(args.module, kwargs, start_time, print_meta=args.print_meta)


def cmd_crawl(args: argparse.Namespace) -> int:
    start_time = time.monotonic()
    kwargs = _crawl_kwargs(args)
    return _run_and_report(CRAWLER_MODULE, kwargs, start_time, print_meta=True)


def _run_and_report(module: str, kwargs: dict[str, Any], start_time: float, *, print_meta: bool) -> int:
    try:
        meta, run_id = _runner.run_module_once(module=module, kwargs=kwargs)
        L.write_activity_log({
            "ts": _now_iso(),
            "event": "cli_run",
            "run_id": run_id,
            "module": module,
            "trigger_type": "adhoc",
            "kwargs": kwargs,
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })

        if meta and print_meta:
            print(json.dumps(meta, ensure_ascii=False, indent=2, default=str))
        message = (meta or {}).get("message")
        print(f"SUCCESS: {message}" if message else "DONE: Module run completed.")
        return 0

    except KeyboardInterrupt:
        return 130
    except ConfigError as e:
        print(f"CONFIG ERROR: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        L.write_error_log({
            "ts": _now_iso(),
            "where": "cli.run",
            "module": module,
            "kwargs": kwargs,
            "error": repr(e),
            "duration_ms": int((time.monotonic() - start_time) * 1000),
        })
        return 1


def cmd_validate_input(args: argparse.Namespace) -> int:
    try:
        settings = CrawlSettings.from_env_and_kwargs({"input_path": args.input})
    except KeyboardInterrupt:
        return 130
    except ConfigError as e:
        print(f"ERROR: input invalid: {e}", file=sys.stderr)
        return 2
    searches = len(settings.start_urls) or len(settings.search_keywords)
    print(f"OK: input is valid ({searches} searches, max_items={settings.max_items}).")
    return 0


def cmd_list_countries(args: argparse.Namespace) -> int:
    rows = [(country, f"{len(cities)} cities: {', '.join(cities[:4])}, ...") for country, cities in sorted(COUNTRY_CITIES.items())]
    _print_table(rows, headers=("COUNTRY", "CITIES"))
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="LinkedIn guest jobs crawler command-line tools",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # run
    sp = sub.add_parser("run", help="Execute a module ad-hoc via runner.run_module_once().")
    sp.add_argument("module", help="Module to run (e.g., modules.jobs_crawler).")
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra keyword arguments for the module (JSON values supported).",
    )
    sp.add_argument("--print-meta", action="store_true", help="Print the returned meta dict as JSON.")
    sp.set_defaults(func=cmd_run)

    # crawl
    sp = sub.add_parser("crawl", help="Run the jobs crawler.")
    sp.add_argument("--input", help="JSON/YAML input document (defaults to $JOBS_CRAWLER_INPUT).")
    sp.add_argument("--start-url", action="append", help="LinkedIn jobs search URL (repeatable).")
    sp.add_argument("--keywords", nargs="*", help="Search keywords (one search per keyword).")
    sp.add_argument("--location", help="Search location used with --keywords.")
    sp.add_argument("--max-items", type=int, help="Maximum number of jobs to output.")
    sp.add_argument("--output", help="JSONL dataset path.")
    sp.add_argument("--summary", help="Run summary JSON path.")
    sp.set_defaults(func=cmd_crawl)

    # validate-input
    sp = sub.add_parser("validate-input", help="Verify a crawler input document.")
    sp.add_argument("--input", required=True, help="JSON/YAML input document.")
    sp.set_defaults(func=cmd_validate_input)

    # list-countries
    sp = sub.add_parser("list-countries", help="Print countries available for split-by-location.")
    sp.set_defaults(func=cmd_list_countries)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
