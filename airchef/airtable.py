"""Thin async wrapper around the Airtable REST API.

Records come back exactly as Airtable sends them:
``{"id": "rec...", "createdTime": "...", "fields": {...}}``. Turning them into
something typed is the caller's job (see `airchef.models`).
"""

import logging
from typing import Any, Iterable, Self
from urllib.parse import quote

import httpx

from airchef.config import Config
from airchef.errors import NotFound, UpstreamError


logger = logging.getLogger(__name__)


type Record = dict[str, Any]
type Fields = dict[str, Any]


BASE_URL = "https://api.airtable.com/v0/"
# Airtable refuses more than this many records per create/delete request.
BATCH_SIZE = 10


def airtable_client_factory(
    base_id: str,
    token: str,
    *,
    base_url: str = BASE_URL,
    timeout: float = 20,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=f"{base_url.rstrip('/')}/{base_id}/",
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        },
        timeout=timeout,
    )


def chunks[T](items: list[T], size: int = BATCH_SIZE) -> Iterable[list[T]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def error_message(resp: httpx.Response) -> str:
    """Airtable puts the reason in ``error``, either a string or an object."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    err = data.get("error") if isinstance(data, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or err.get("type") or err)
    if err:
        return str(err)
    return resp.reason_phrase


class AirtableClient:
    @classmethod
    def from_config(cls, config: Config) -> Self:
        return cls(
            client=airtable_client_factory(
                config.airtable_base_id,
                config.airtable_api_key,
                base_url=config.airtable_url,
                timeout=config.airtable_timeout,
            )
        )

    def __init__(self, *, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        table: str,
        record_id: str | None = None,
        **kwargs: Any,
    ) -> Any:
        url = quote(table, safe="")
        if record_id is not None:
            url = f"{url}/{quote(record_id, safe='')}"

        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %r", method, table, e)
            raise UpstreamError(f"Could not reach Airtable: {e}") from e

        if resp.status_code == 404:
            msg = error_message(resp)
            logger.info("%s %s: not found (%s)", method, table, msg)
            raise NotFound(
                f"No record {record_id} in {table}" if record_id else f"No table {table}"
            )
        if resp.is_error:
            msg = error_message(resp)
            logger.error("%s %s failed with %d: %s", method, table, resp.status_code, msg)
            raise UpstreamError(f"Airtable {method} {table} failed: {msg}")

        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(f"Airtable sent a non-JSON response for {table}") from e

    async def get_one(self, table: str, record_id: str) -> Record:
        return await self._request("GET", table, record_id)

    async def create_one(self, table: str, fields: Fields) -> Record:
        return await self._request("POST", table, json={"fields": fields})

    async def create_many(self, table: str, fields_list: list[Fields]) -> list[Record]:
        created: list[Record] = []
        for batch in chunks(fields_list):
            data = await self._request(
                "POST", table, json={"records": [{"fields": f} for f in batch]}
            )
            created.extend(data.get("records") or [])
        return created

    async def update_one(self, table: str, record_id: str, fields: Fields) -> Record:
        return await self._request("PATCH", table, record_id, json={"fields": fields})

    async def delete_one(self, table: str, record_id: str) -> bool:
        data = await self._request("DELETE", table, record_id)
        return bool(data.get("deleted", True))

    async def delete_many(self, table: str, record_ids: list[str]) -> list[str]:
        deleted: list[str] = []
        for batch in chunks(record_ids):
            data = await self._request(
                "DELETE", table, params=[("records[]", i) for i in batch]
            )
            deleted.extend(r["id"] for r in data.get("records") or [] if r.get("deleted"))
        return deleted

    # Last, so the `list[...]` annotations above still mean the builtin.
    async def list(
        self,
        table: str,
        *,
        sort_field: str | None = None,
        sort_direction: str = "asc",
        filter_formula: str | None = None,
    ) -> list[Record]:
        params: dict[str, str] = {}
        if sort_field:
            params["sort[0][field]"] = sort_field
            params["sort[0][direction]"] = sort_direction
        if filter_formula:
            params["filterByFormula"] = filter_formula

        records: list[Record] = []
        while True:
            data = await self._request("GET", table, params=params)
            records.extend(data.get("records") or [])
            offset = data.get("offset")
            if not offset:
                return records
            params["offset"] = offset
