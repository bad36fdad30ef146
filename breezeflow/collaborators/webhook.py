"""HTTP webhook action handler."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from ..errors import PermanentError, TransientError

logger = logging.getLogger(__name__)


class WebhookHandler:
    """Call an HTTP endpoint described by the action config.

    Config keys: ``url`` (required), ``method`` (default POST), ``headers``,
    ``payload`` (JSON body; defaults to the remaining config keys).
    """

    def __init__(self, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = timeout
        self._transport = transport

    async def __call__(self, config: Dict[str, Any]) -> Dict[str, Any]:
        url = config.get("url")
        if not url or not isinstance(url, str):
            raise PermanentError("Webhook action requires a 'url'")
        method = str(config.get("method") or "POST").upper()
        headers = config.get("headers") or {}
        if "payload" in config:
            payload = config["payload"]
        else:
            payload = {k: v for k, v in config.items() if k not in {"url", "method", "headers"}}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    json=payload if method not in {"GET", "DELETE"} else None,
                )
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise TransientError(f"Webhook {method} {url} failed: {exc}") from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise TransientError(f"Webhook {method} {url} returned HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PermanentError(f"Webhook {method} {url} returned HTTP {response.status_code}")

        logger.info(f"Webhook {method} {url} -> {response.status_code}")
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return {"status_code": response.status_code, "body": body}
