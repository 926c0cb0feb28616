"""Outbound HTTP calls for ``webhook`` steps and ``api_call`` tasks."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from ..constants import DEFAULT_HTTP_TIMEOUT
from .base import ActionHandler

logger = logging.getLogger(__name__)


class HttpCallAction(ActionHandler):
    """Perform an HTTP request described by the action config.

    Config keys: ``url`` (required), ``method``, ``headers``, ``params`` and
    ``data`` (sent as JSON). Responses outside the 2xx range fail the action.
    """

    required_keys = ("url",)

    def __init__(
        self,
        default_method: str = "GET",
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.default_method = default_method
        self.timeout = timeout
        self._transport = transport

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        method = str(config.get("method") or self.default_method).upper()
        url = config["url"]
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method,
                url,
                headers=config.get("headers"),
                params=config.get("params"),
                json=config.get("data"),
            )
        logger.info(f"{method} {url} -> {response.status_code}")
        response.raise_for_status()

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return {"status_code": response.status_code, "response": body}
