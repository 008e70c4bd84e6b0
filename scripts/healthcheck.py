#!/usr/bin/env python
"""Container healthcheck for the tempo catalog.

Checks ``/readyz`` (database reachable) by default; set ``HEALTHCHECK_PATH=/health``
for a liveness-only check or ``HEALTHCHECK_URL`` to probe another host.
"""

import os
import sys

import requests

HEALTHY_STATUSES = {"ok", "ready"}


def target_url(env=os.environ) -> str:
    if env.get("HEALTHCHECK_URL"):
        return env["HEALTHCHECK_URL"]
    host = env.get("HEALTHCHECK_HOST", "127.0.0.1")
    port = env.get("PORT", "5000")
    path = env.get("HEALTHCHECK_PATH", "/readyz")
    return f"http://{host}:{port}{path}"


def check(url: str, session=None, timeout: float = 5.0):
    """Return ``(healthy, reason)`` for the catalog endpoint at ``url``."""
    http = session or requests
    try:
        resp = http.get(url, timeout=timeout)
    except requests.RequestException as exc:
        return False, f"unreachable: {exc}"
    try:
        body = resp.json()
    except ValueError:
        return False, f"HTTP {resp.status_code} without a JSON body"
    status = body.get("status") if isinstance(body, dict) else None
    if resp.status_code != 200 or status not in HEALTHY_STATUSES:
        checks = body.get("checks") if isinstance(body, dict) else None
        return False, f"HTTP {resp.status_code} status={status!r} checks={checks!r}"
    return True, status


def main() -> int:
    url = target_url()
    healthy, reason = check(url)
    if not healthy:
        print(f"{url}: {reason}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
