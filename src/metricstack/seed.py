"""
Sample telemetry seeder for the `metricstack-seed` command.

Sends one sample envelope to a running server:

  metricstack-seed                                   JSON body, v=L7ip
  metricstack-seed http://host:3000/api/metrics --encode
  metricstack-seed --key abc --encode                codec token keyed by abc
"""

import asyncio
import json
import time
from typing import Any, Dict, Optional, Tuple

import aiohttp
import click
import structlog

from .core.codec import encode_payload

logger = structlog.get_logger(__name__)

DEFAULT_URL = "http://localhost:3000/api/metrics"
DEFAULT_KEY = "L7ip"


def build_sample_envelope(now_ms: Optional[int] = None) -> Dict[str, Any]:
    """A representative envelope exercising every optional section."""
    now = now_ms if now_ms is not None else int(time.time() * 1000)
    return {
        "id": "session-demo-1",
        "timestamp": now,
        "env": {
            "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
            "language": "en-US",
            "online": True,
            "downlink": 9.2,
            "effectiveType": "4g",
            "rtt": 42,
            "saveData": False,
            "type": "wifi",
            "timezone": "Asia/Kolkata",
            "locale": "en-US",
            "offsetMinutes": -330,
            "href": "https://example.com/demo",
            "referrer": "",
        },
        "trace": [
            {"event": "telemetry_start", "timestamp": now},
            {"event": "click", "timestamp": now + 500, "data": {"x": 120, "y": 80}},
        ],
        "pings": [
            {
                "site": "example.com",
                "url": "https://example.com/favicon.ico",
                "start": now,
                "duration": 50,
                "timeout": False,
                "error": False,
            }
        ],
    }


def build_request(envelope: Dict[str, Any], key: str, encode: bool) -> Tuple[str, Dict[str, str]]:
    """Request body and headers for an envelope, encoded or as plain JSON."""
    if encode:
        return encode_payload(envelope, key), {"Content-Type": "text/plain"}
    return json.dumps(envelope), {"Content-Type": "application/json"}


async def send_sample(url: str, key: str, encode: bool, timeout_seconds: float = 10.0) -> Tuple[int, Any]:
    """POST one sample envelope and return (status, parsed body)."""
    body, headers = build_request(build_sample_envelope(), key, encode)
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout_seconds)) as session:
        async with session.post(url, params={"v": key}, data=body, headers=headers) as response:
            try:
                payload = await response.json(content_type=None)
            except (aiohttp.ContentTypeError, json.JSONDecodeError):
                payload = await response.text()
            return response.status, payload


@click.command()
@click.argument("url", default=DEFAULT_URL)
@click.option("--key", default=DEFAULT_KEY, show_default=True, help="Version token, also the codec key.")
@click.option("--encode/--no-encode", default=False, help="Send a codec token instead of JSON.")
@click.option("--timeout", "timeout_seconds", default=10.0, show_default=True, help="Request timeout in seconds.")
def main(url: str, key: str, encode: bool, timeout_seconds: float) -> None:
    """Send a sample telemetry envelope to URL."""
    try:
        status, payload = asyncio.run(send_sample(url, key, encode, timeout_seconds))
    except aiohttp.ClientError as e:
        logger.warning("Sample request failed", url=url, error=str(e), error_type=type(e).__name__)
        raise click.ClickException(f"Request failed: {e}")

    click.echo(f"status {status} {json.dumps(payload) if not isinstance(payload, str) else payload}")
    if status >= 400:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
