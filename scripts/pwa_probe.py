#!/usr/bin/env python3
"""Check a deployed site for what the browser needs before it offers install.

Fetches the page, the web app manifest and the background-worker script
and reports whether each is reachable, plus whether the origin counts as
a secure context.

Usage
-----
::

    python scripts/pwa_probe.py https://app.example.com/

Options::

    --manifest PATH     Manifest path relative to the site (default: PYPWA_MANIFEST_URL or /manifest.webmanifest)
    --worker PATH       Worker script path (default: PYPWA_SERVICE_WORKER_URL or /sw.js)
    --timeout SECONDS   Per-request timeout (default: 10)
    --json              Output as machine-readable JSON
    --output FILE       Write output to FILE instead of stdout
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any
from urllib.parse import urljoin

import aiohttp

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pypwa.config import LifecycleConfig  # noqa: E402
from pypwa.diagnostics import is_secure_context, probe_manifest, probe_url  # noqa: E402


async def probe_site(site: str, *, manifest: str, worker: str, timeout: float) -> dict[str, Any]:
    manifest_url = urljoin(site, manifest)
    worker_url = urljoin(site, worker)
    async with aiohttp.ClientSession() as session:
        page_status, manifest_ok, worker_status = await asyncio.gather(
            probe_url(session, site, timeout=timeout),
            probe_manifest(session, manifest_url, timeout=timeout),
            probe_url(session, worker_url, timeout=timeout),
        )
    return {
        "site": site,
        "secure_context": is_secure_context(site),
        "page_status": page_status,
        "manifest_url": manifest_url,
        "manifest_ok": manifest_ok,
        "worker_url": worker_url,
        "worker_status": worker_status,
        "installable": bool(
            is_secure_context(site) and manifest_ok and worker_status is not None and worker_status < 400
        ),
    }


def _format_text(result: dict[str, Any]) -> str:
    width = max(len(key) for key in result)
    return "\n".join(f"{key:<{width}}  {value}" for key, value in result.items())


async def main() -> None:
    config = LifecycleConfig.from_env()
    parser = argparse.ArgumentParser(description="Check a site's install prerequisites.")
    parser.add_argument("site", help="Site URL, e.g. https://app.example.com/")
    parser.add_argument("--manifest", default=config.manifest_url, help="Manifest path")
    parser.add_argument("--worker", default=config.service_worker_url, help="Worker script path")
    parser.add_argument("--timeout", type=float, default=10.0, help="Per-request timeout in seconds")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    result = await probe_site(args.site, manifest=args.manifest, worker=args.worker, timeout=args.timeout)

    payload = json.dumps(result, indent=2, ensure_ascii=False) if args.json_mode else _format_text(result)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
        print(f"Wrote {args.output}", file=sys.stderr)
    else:
        print(payload)

    if not result["installable"]:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
