"""
Shared helpers for the EMIS teacher lookup serverless functions.

Upstream: EMIS portal internal APIs (http://emis.gov.bd)
Auth: static CSRF tokens + cookies issued by the portal, supplied via env vars
"""

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler
from urllib.parse import urlparse, parse_qs

import requests

logger = logging.getLogger("api")

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
REQUEST_TIMEOUT = 30

CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}


@dataclass(frozen=True)
class EmisConfig:
    base_url: str = "http://emis.gov.bd"
    verification_token: str = ""
    lookup_csrf_token: str = ""
    detail_csrf_token: str = ""
    flatten_mode: str = "prefix"
    developer: str = "Tofazzal Hossain"


def load_config() -> EmisConfig:
    """Read portal settings from the environment."""
    return EmisConfig(
        base_url=os.environ.get("EMIS_BASE_URL", "http://emis.gov.bd").rstrip("/"),
        verification_token=os.environ.get("EMIS_VERIFICATION_TOKEN", ""),
        lookup_csrf_token=os.environ.get("EMIS_LOOKUP_CSRF_TOKEN", ""),
        detail_csrf_token=os.environ.get("EMIS_DETAIL_CSRF_TOKEN", ""),
        flatten_mode=os.environ.get("EMIS_FLATTEN_MODE", "prefix").strip().lower(),
        developer=os.environ.get("API_DEVELOPER", "Tofazzal Hossain"),
    )


# ---------------------------------------------------------------------------
# Fetchers
# ---------------------------------------------------------------------------
def _fetch_json(session, url: str, headers: dict, body) -> dict | list:
    """Run one request. Failures come back as an {"error": ...} sentinel."""
    method = "POST" if body else "GET"
    try:
        resp = session.request(
            method,
            url,
            headers=headers,
            data=body if body else None,
            timeout=REQUEST_TIMEOUT,
        )
        if not 200 <= resp.status_code < 300:
            raise requests.HTTPError(f"HTTP error! status: {resp.status_code}")
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Error fetching %s: %s", url, e)
        return {"error": str(e)}


def fetch_parallel(urls: list, headers: dict, bodies: list | None = None, session=None) -> list:
    """
    Fire one request per URL concurrently and return the parsed JSON results
    in the same order as ``urls``.

    ``bodies[i]`` (when truthy) makes request *i* a POST carrying that body;
    otherwise it is a GET. A failed request does not abort the batch: its slot
    holds ``{"error": <message>}`` instead.
    """
    if not urls:
        raise ValueError("No URLs provided")
    for index, url in enumerate(urls):
        if not url:
            raise ValueError(f"Empty API URL at index {index}")

    session = session or requests
    bodies = bodies or []

    def fetch_item(index):
        body = bodies[index] if index < len(bodies) else None
        return _fetch_json(session, urls[index], headers, body)

    with ThreadPoolExecutor(max_workers=len(urls)) as pool:
        futures = [pool.submit(fetch_item, i) for i in range(len(urls))]
        return [f.result() for f in futures]


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------
def envelope(config: EmisConfig, ok: bool, **payload) -> dict:
    """Wrap a payload in the {ok, developer, ...} envelope every response uses."""
    return {"ok": ok, "developer": config.developer, **payload}


def send_json(handler: BaseHTTPRequestHandler, data: dict | None, status: int = 200):
    """Send a JSON response with CORS headers. ``None`` sends headers only."""
    handler.send_response(status)
    for name, value in CORS_HEADERS.items():
        handler.send_header(name, value)
    if data is None:
        handler.end_headers()
        return
    body = json.dumps(data, ensure_ascii=False).encode()
    handler.send_header("Content-Type", "application/json; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def get_query_params(handler: BaseHTTPRequestHandler) -> dict:
    """Parse query string params from the request URL."""
    parsed = urlparse(handler.path)
    return {k: v[0] for k, v in parse_qs(parsed.query).items()}
