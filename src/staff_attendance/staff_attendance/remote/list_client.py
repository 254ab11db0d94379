"""
SharePoint list client
Minimal REST client for the list operations the attendance adapter needs
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx
import structlog

from ..core.exceptions import AuthRequiredError, RemoteStoreError, RequestAbortedError
from .connection import RemoteStoreConfig, TokenProvider

logger = structlog.get_logger(__name__)

JSON_NOMETADATA = "application/json;odata=nometadata"


def escape_odata_string(value: str) -> str:
    return value.replace("'", "''")


class SharePointListClient:
    """Client for a SharePoint-style list REST API.

    A fresh httpx.AsyncClient is opened per request so one instance can be
    shared between event loops (Flask runs each async view in its own loop).
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        config: RemoteStoreConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token_provider = token_provider
        self._config = config
        self._transport = transport

    def _list_path(self, list_title: str) -> str:
        return f"/lists/getbytitle('{quote(escape_odata_string(list_title), safe='')}')"

    def _item_path(self, list_title: str, item_id: int) -> str:
        return f"{self._list_path(list_title)}/items({int(item_id)})"

    def _resolve_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self._config.api_base_url}{path}"

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._token_provider()
        if not token:
            raise AuthRequiredError()
        return {"Authorization": f"Bearer {token}", "Accept": JSON_NOMETADATA}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = self._resolve_url(path)
        headers = await self._auth_headers()
        headers.update(kwargs.pop("headers", {}) or {})

        async with httpx.AsyncClient(timeout=self._config.timeout, transport=self._transport) as client:
            response = await client.request(method, url, headers=headers, **kwargs)

        if response.is_error:
            self._raise_http_error(response, method=method)
        return response

    @staticmethod
    def _read_error_detail(response: httpx.Response) -> str:
        text = response.text
        try:
            data = response.json()
        except ValueError:
            return text
        if not isinstance(data, dict):
            return text

        for container_key in ("error", "odata.error"):
            container = data.get(container_key)
            if isinstance(container, dict):
                message = container.get("message")
                if isinstance(message, dict) and isinstance(message.get("value"), str):
                    return message["value"]
                if isinstance(message, str):
                    return message
        message = data.get("message")
        if isinstance(message, dict) and isinstance(message.get("value"), str):
            return message["value"]
        return text

    def _raise_http_error(self, response: httpx.Response, *, method: str) -> None:
        detail = self._read_error_detail(response)
        url = str(response.request.url)
        # Always one line per failure; query strings can carry filter values.
        logger.error(
            "remote_store_request_failed",
            status=response.status_code,
            reason=response.reason_phrase,
            method=method,
            url=url.split("?")[0],
        )
        base = f"APIリクエストに失敗しました ({response.status_code} {response.reason_phrase})"
        raise RemoteStoreError(
            detail or base,
            status=response.status_code,
            status_text=response.reason_phrase,
            method=method,
            url=url,
            detail=detail,
        )

    async def get_items_by_filter(
        self,
        list_title: str,
        select: List[str],
        filter: Optional[str] = None,
        orderby: Optional[str] = None,
        top: int = 500,
        *,
        page_cap: int = 1,
        abort: Optional[asyncio.Event] = None,
    ) -> List[Dict[str, Any]]:
        """Query list items, following nextLink for at most `page_cap` pages."""

        params: Dict[str, str] = {}
        if select:
            params["$select"] = ",".join(select)
        if filter:
            params["$filter"] = filter
        if orderby:
            params["$orderby"] = orderby
        params["$top"] = str(int(top))

        rows: List[Dict[str, Any]] = []
        next_path: Optional[str] = f"{self._list_path(list_title)}/items"
        next_params: Optional[Dict[str, str]] = params
        pages = 0

        while next_path and pages < max(1, int(page_cap)):
            if abort is not None and abort.is_set():
                raise RequestAbortedError(f"listing of {list_title!r} aborted")

            response = await self._request("GET", next_path, params=next_params)
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            batch = payload.get("value") if isinstance(payload, dict) else None
            if isinstance(batch, list):
                rows.extend(r for r in batch if isinstance(r, dict))
            pages += 1

            next_link = None
            if isinstance(payload, dict):
                next_link = payload.get("@odata.nextLink") or payload.get("odata.nextLink") or payload.get("nextLink")
            next_path = next_link if isinstance(next_link, str) and next_link else None
            # nextLink already carries the query string
            next_params = None

        if abort is not None and abort.is_set():
            raise RequestAbortedError(f"listing of {list_title!r} aborted")
        return rows

    async def get_item_with_etag(
        self,
        list_title: str,
        item_id: int,
        select: Optional[List[str]] = None,
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        params = {"$select": ",".join(select)} if select else None
        response = await self._request("GET", self._item_path(list_title, item_id), params=params)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        etag = response.headers.get("ETag") or body.get("odata.etag") or body.get("@odata.etag")
        return body, etag

    async def update_item(
        self,
        list_title: str,
        item_id: int,
        payload: Dict[str, Any],
        *,
        if_match: str = "*",
    ) -> None:
        await self._request(
            "POST",
            self._item_path(list_title, item_id),
            headers={
                "X-HTTP-Method": "MERGE",
                "If-Match": if_match or "*",
                "Content-Type": JSON_NOMETADATA,
            },
            json=payload,
        )

    async def add_item(self, list_title: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"{self._list_path(list_title)}/items",
            headers={"Content-Type": JSON_NOMETADATA},
            json=payload,
        )
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    async def delete_item(self, list_title: str, item_id: int) -> None:
        await self._request("DELETE", self._item_path(list_title, item_id), headers={"If-Match": "*"})
