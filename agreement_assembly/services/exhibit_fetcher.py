"""
Exhibit Fetcher — bounded concurrent download of exhibit files.

Repository calls are blocking (pymongo), so each fetch runs in a worker
thread. A semaphore caps the fan-out, and each fetch is retried with a short
linear backoff before the exhibit is reported as skipped. Results come back
in the order requested regardless of completion order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from pydantic import BaseModel

from agreement_assembly.config import Settings, get_settings
from agreement_assembly.errors import ExhibitFetchError
from agreement_assembly.models.schemas import ExhibitRecord
from agreement_assembly.persistence.exhibit_repository import ExhibitRepository

logger = logging.getLogger(__name__)


class FetchedExhibit(BaseModel):
    record: ExhibitRecord
    document: Optional[bytes] = None
    error: str = ""
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.document is not None


class ExhibitFetcher:
    def __init__(self, repository: ExhibitRepository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or get_settings()

    async def fetch_all(self, records: list[ExhibitRecord]) -> list[FetchedExhibit]:
        """Fetch every record; failures are returned, not raised."""
        if not records:
            return []
        semaphore = asyncio.Semaphore(max(1, self.settings.fetch_concurrency))
        tasks = [asyncio.create_task(self._fetch_one(record, semaphore)) for record in records]
        try:
            return list(await asyncio.gather(*tasks))
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

    async def _fetch_one(self, record: ExhibitRecord, semaphore: asyncio.Semaphore) -> FetchedExhibit:
        retries = max(0, self.settings.exhibit_fetch_retries)
        backoff = max(0.0, self.settings.exhibit_fetch_backoff_seconds)
        last_error = ""

        for attempt in range(1, retries + 2):
            async with semaphore:
                try:
                    data = await asyncio.to_thread(self.repository.get_exhibit_file, record.id)
                except ExhibitFetchError as e:
                    last_error = e.reason or str(e)
                except Exception as e:
                    last_error = f"{type(e).__name__}: {e}"
                else:
                    if data:
                        return FetchedExhibit(record=record, document=data, attempts=attempt)
                    last_error = "empty file"

            if attempt <= retries:
                logger.debug(f"Retrying exhibit {record.id} after: {last_error}")
                await asyncio.sleep(backoff * attempt)

        logger.warning(f"Exhibit {record.id} ({record.name}) skipped after {retries + 1} attempts: {last_error}")
        return FetchedExhibit(record=record, error=last_error, attempts=retries + 1)
