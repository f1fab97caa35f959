"""Airtable REST adapter for CRM leads."""

import logging
from urllib.parse import quote

import requests

from cadence.adapters.http import DEFAULT_TIMEOUT, RetryPolicy
from cadence.config import Config
from cadence.core.leads import Lead
from cadence.errors import AuthenticationError, StoreError

logger = logging.getLogger(__name__)

API_BASE = "https://api.airtable.com/v0"
PAGE_SIZE = 100


class AirtableAdapter:
    """Implements LeadRepository over the Airtable REST API."""

    def __init__(
        self,
        api_key: str,
        base_id: str,
        table: str,
        retry: RetryPolicy | None = None,
        max_records: int | None = None,
    ):
        self.api_key = api_key
        self.base_id = base_id
        self.table = table
        self.max_records = max_records
        self.retry = retry or RetryPolicy()
        self._session = self.retry.session()

    @classmethod
    def from_config(cls, config: Config, retry: RetryPolicy | None = None) -> "AirtableAdapter":
        return cls(
            api_key=config.airtable_api_key,
            base_id=config.airtable_base_id,
            table=config.airtable_table,
            retry=retry or RetryPolicy.from_config(config),
        )

    @property
    def _url(self) -> str:
        return f"{API_BASE}/{self.base_id}/{quote(self.table, safe='')}"

    def _get_page(self, offset: str | None) -> dict:
        params = {"pageSize": PAGE_SIZE}
        if offset:
            params["offset"] = offset
        try:
            resp = self._session.get(
                self._url,
                params=params,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=DEFAULT_TIMEOUT,
            )
            if resp.status_code in (401, 403):
                raise AuthenticationError(f"Airtable rejected the API key: {resp.text}")
            resp.raise_for_status()
        except requests.RequestException as e:
            raise StoreError(f"Airtable fetch failed: {e}") from e
        return resp.json()

    def list_records(self) -> list[dict]:
        """All records of the table, following ``offset`` pagination."""
        if not self.api_key or not self.base_id or not self.table:
            raise AuthenticationError("Missing Airtable settings. Add them to config/cadence.conf")

        records: list[dict] = []
        offset = None
        while True:
            page = self._get_page(offset)
            records.extend(page.get("records", []))
            offset = page.get("offset")
            if not offset or (self.max_records and len(records) >= self.max_records):
                break

        if self.max_records:
            records = records[: self.max_records]
        logger.info(f"Fetched {len(records)} records from Airtable table {self.table}")
        return records

    def list_leads(self) -> list[Lead]:
        return [Lead.from_api(r) for r in self.list_records()]
