from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

from aiscraper.api_client import InMemoryTokenStore
from aiscraper.errors import describe_error
from aiscraper.health import DEFAULT_ENDPOINTS, SystemHealth, run_health_check
from aiscraper.sdk import AiScraperClient


def _print_report(health: SystemHealth, *, as_json: bool) -> None:
    if as_json:
        payload = {
            "overall": health.overall,
            "checkedAt": health.checked_at.isoformat(),
            "checks": [
                {
                    "endpoint": c.endpoint,
                    "status": c.status,
                    "responseTimeMs": round(c.response_time_ms, 1),
                    "error": c.error,
                }
                for c in health.checks
            ],
        }
        print(json.dumps(payload, indent=2))
        return

    print(f"Overall: {health.overall}")
    for c in health.checks:
        line = f"  {c.status:<9} {c.endpoint} ({c.response_time_ms:.0f}ms)"
        if c.error:
            line += f" - {c.error}"
        print(line)


async def _run(args: argparse.Namespace) -> int:
    client = AiScraperClient(args.base_url.rstrip("/"), token_store=InMemoryTokenStore(args.token))
    try:
        if args.email and args.password:
            login = await client.login(args.email, args.password)
            if not login.ok:
                detail = describe_error(login.error) if login.error is not None else f"HTTP {login.status_code}"
                print(f"Login failed: {detail}", file=sys.stderr)
                return 2

        health = await run_health_check(client.api, args.endpoint or DEFAULT_ENDPOINTS)
    finally:
        await client.close()

    _print_report(health, as_json=args.json)
    return 1 if health.overall == "unhealthy" else 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="aiscraper-health")
    parser.add_argument("--base-url", default=os.getenv("AISCRAPER_URL", "http://localhost:8000"))
    parser.add_argument("--token", default=os.getenv("AISCRAPER_TOKEN"))
    parser.add_argument("--email", default=os.getenv("AISCRAPER_EMAIL"))
    parser.add_argument("--password", default=os.getenv("AISCRAPER_PASSWORD"))
    parser.add_argument(
        "--endpoint",
        action="append",
        help="Endpoint path to probe; repeatable. Defaults to the standard API endpoints.",
    )
    parser.add_argument("--json", action="store_true", help="Print the report as JSON.")
    args = parser.parse_args(argv)

    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
