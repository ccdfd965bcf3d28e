from __future__ import annotations

import asyncio
import logging

import httpx
from pydantic import ValidationError as PydanticValidationError

from redirector.domain.models import HealthRecord, HealthStatus
from redirector.infra import kv_store, settings
from redirector.infra.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

HEALTH_KEY_PREFIX = "health:"


class HealthMonitor:
    """Polls configured services and records ``up``/``down`` in the store.

    Failures never propagate: a check that errors or exceeds its timeout is
    recorded as ``down``.
    """

    def __init__(
        self,
        *,
        store: KeyValueStore | None = None,
        targets: dict[str, str] | None = None,
        timeout_seconds: float | None = None,
        interval_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = settings.get_settings()
        self._store = store or kv_store.get_store()
        self._targets = config.health_targets if targets is None else targets
        self._timeout_seconds = timeout_seconds or config.health_timeout_seconds
        self._interval_seconds = interval_seconds or config.health_interval_seconds
        self._transport = transport

    @property
    def targets(self) -> dict[str, str]:
        return dict(self._targets)

    async def _probe(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        return await client.get(url, follow_redirects=False)

    async def check(self, client: httpx.AsyncClient, name: str, url: str) -> HealthRecord:
        try:
            response = await asyncio.wait_for(self._probe(client, url), timeout=self._timeout_seconds)
        except TimeoutError:
            return HealthRecord(name=name, url=url, status=HealthStatus.DOWN, detail="timeout")
        except httpx.HTTPError as exc:
            return HealthRecord(name=name, url=url, status=HealthStatus.DOWN, detail=type(exc).__name__)
        if response.status_code < 400:
            return HealthRecord(name=name, url=url, status=HealthStatus.UP, detail=str(response.status_code))
        return HealthRecord(name=name, url=url, status=HealthStatus.DOWN, detail=str(response.status_code))

    def _record(self, record: HealthRecord) -> None:
        try:
            self._store.put(f"{HEALTH_KEY_PREFIX}{record.name}", record.model_dump_json())
        except Exception:
            logger.exception("failed to record health status for %s", record.name)

    async def run_once(self) -> list[HealthRecord]:
        if not self._targets:
            return []
        async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
            records = await asyncio.gather(
                *(self.check(client, name, url) for name, url in self._targets.items())
            )
        for record in records:
            if record.status == HealthStatus.DOWN:
                logger.warning("health check %s is down: %s", record.name, record.detail)
        # store calls block on the network
        await asyncio.gather(*(asyncio.to_thread(self._record, record) for record in records))
        return list(records)

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("health polling round failed")
            await asyncio.sleep(self._interval_seconds)

    def statuses(self) -> list[HealthRecord]:
        records: list[HealthRecord] = []
        for _key, raw in self._store.list_prefix(HEALTH_KEY_PREFIX):
            try:
                records.append(HealthRecord.model_validate_json(raw))
            except PydanticValidationError:
                continue
        return sorted(records, key=lambda item: item.name)
