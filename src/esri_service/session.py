"""ImportSession - the process-wide import state behind the HTTP API.

One session lives for the whole service process. Its ledger and field
mapping are deliberately kept for that lifetime so that re-querying the
same service after every map move only imports features not seen before.
reset() clears the ledger on request.

Imports run under a lock because debounced re-queries fire on a timer
thread; request handlers hand imports to the threadpool so the event loop
never waits on that lock.
"""

from __future__ import annotations

import threading

from fastapi.concurrency import run_in_threadpool
from loguru import logger

from esri_import.debounce import Debouncer
from esri_import.driver import ImportDriver, ImportReport
from esri_import.field_mapper import FieldMapper
from esri_import.host import MemoryHost
from esri_import.layer import ImportLayer
from esri_import.ledger import DedupLedger
from esri_import.query import BBox, ServiceQuery
from esri_service.config import Settings


class ImportSession:
    """Host, mapping, ledger, layer and service query for one process."""

    def __init__(self, config: Settings) -> None:
        self.config = config
        self.host = MemoryHost()
        self.mapper = FieldMapper()
        self.ledger = DedupLedger()
        self.driver = ImportDriver(
            self.host, self.mapper, self.ledger, source_id_field=config.source_id_field,
        )
        self.layer = ImportLayer()
        self.service: ServiceQuery | None = None
        self.last_report: ImportReport | None = None
        self.debouncer = Debouncer(config.move_debounce_seconds, self.query)
        self._lock = threading.Lock()
        if config.service_url:
            self.set_service(config.service_url)

    def set_service(self, url: str) -> ServiceQuery:
        """Point the session at a feature service; a new URL starts fresh bounds."""
        if self.service is None or self.service.url != url:
            self.service = ServiceQuery(
                url,
                out_sr=self.config.out_sr,
                precision=self.config.bbox_precision,
                timeout=self.config.fetch_timeout,
                user_agent=self.config.user_agent,
            )
            logger.info(f"Feature service set: {url}")
        return self.service

    def import_collection(self, collection: dict) -> ImportReport:
        with self._lock:
            if not self.layer.enabled:
                logger.debug("Import layer disabled, ignoring collection")
                report = ImportReport()
            else:
                self.layer.set_collection(collection)
                report = self.driver.import_feature_collection(collection)
            self.last_report = report
            return report

    def query(self, bbox: BBox, force: bool = False) -> ImportReport | None:
        """Fetch the service for ``bbox`` and import the result.

        Returns None when no service is set or the bounds are unchanged.
        """
        if self.service is None:
            return None
        collection = self.service.fetch(bbox, force=force)
        if collection is None:
            return None
        return self.import_collection(collection)

    async def query_async(self, bbox: BBox, force: bool = False) -> ImportReport | None:
        if self.service is None:
            return None
        collection = await self.service.fetch_async(bbox, force=force)
        if collection is None:
            return None
        return await run_in_threadpool(self.import_collection, collection)

    def on_move(self, bbox: BBox) -> None:
        """Map moved: schedule a re-query once movement settles."""
        self.debouncer.trigger(bbox)

    def reset(self) -> None:
        with self._lock:
            self.ledger.reset()
            if self.service is not None:
                self.service.reset()
        logger.info("Import ledger cleared")

    def shutdown(self) -> None:
        self.debouncer.cancel()
