#!/usr/bin/env python3
"""
import_csv.py

Purpose:
  Push a CSV file of inventory rows into the quicklook ledger.
  The file is posted as-is to /records/import; the server checks the header,
  normalizes each row and reports values it had to drop.

Auth precedence:
  1) --token <value> (CLI)
  2) env QUICKLOOK_API_KEY

Examples:
  python tools/import_csv.py items.csv --unit "CAVITE PPO" --station "Bacoor CPS"
  python tools/import_csv.py items.csv --department SUPPLY --base-url http://localhost:8089/api/v1

Exit codes:
  0 = rows imported (or the file had no data rows)
  1 = handled error (rejected file, HTTP or network failure)
  2 = usage error (bad arguments, unreadable file)
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import requests

DEFAULT_BASE_URL = "http://localhost:8089/api/v1"
RESOURCE_PATH = "records/import"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Import a CSV file of inventory rows into the quicklook ledger.")
    p.add_argument("csv_file", help="Path to the CSV file to import.")
    p.add_argument("--unit", default="", help="Unit applied to rows that carry none.")
    p.add_argument("--station", default="", help="Station applied to rows that carry none.")
    p.add_argument("--department", default=None, help="Department recorded in the import audit trail.")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL, help=f"Base API URL (default: {DEFAULT_BASE_URL})")
    p.add_argument("--token", default=None, help="API key (X-API-Key). Overrides env QUICKLOOK_API_KEY.")
    p.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout in seconds (default: 60)")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging to stderr.")
    return p.parse_args(argv)


def resolve_token(cli_token: Optional[str]) -> Optional[str]:
    return cli_token or os.getenv("QUICKLOOK_API_KEY") or None


def build_headers(token: Optional[str], department: Optional[str]) -> Dict[str, str]:
    headers = {"Accept": "application/json", "Content-Type": "text/csv; charset=utf-8"}
    if token:
        headers["X-API-Key"] = token
    if department:
        headers["X-Department"] = department
    return headers


def vprint(enabled: bool, *args: Any) -> None:
    if enabled:
        print(*args, file=sys.stderr)


def post_csv(
    session: requests.Session,
    base_url: str,
    body: bytes,
    *,
    token: Optional[str],
    unit: str,
    station: str,
    department: Optional[str],
    timeout: float,
    verbose: bool = False,
) -> Dict[str, Any]:
    url = f"{base_url.rstrip('/')}/{RESOURCE_PATH}"
    params = {"unit": unit, "station": station}
    vprint(verbose, f"POST {url} params={params} bytes={len(body)}")
    r = session.post(url, data=body, params=params, headers=build_headers(token, department), timeout=timeout)
    if r.status_code not in (200, 201):
        try:
            detail = r.json()
            message = detail.get("message") if isinstance(detail, dict) else None
            detail = message or json.dumps(detail)
        except ValueError:
            detail = r.text
        raise requests.HTTPError(f"Import failed ({r.status_code}): {detail}", response=r)
    return r.json()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    path = Path(args.csv_file)
    try:
        body = path.read_bytes()
    except OSError as e:
        print(f"USAGE_ERROR: cannot read {path}: {e}", file=sys.stderr)
        return 2

    token = resolve_token(args.token)
    if not token:
        vprint(args.verbose, "No API key supplied; relying on an open server.")

    session = requests.Session()
    try:
        result = post_csv(
            session,
            args.base_url,
            body,
            token=token,
            unit=args.unit,
            station=args.station,
            department=args.department,
            timeout=args.timeout,
            verbose=args.verbose,
        )
    except requests.exceptions.RequestException as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print(
        json.dumps(
            {
                "status": "imported",
                "inserted": result.get("inserted", 0),
                "warnings": result.get("warnings", []),
            },
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
