"""
Configuration Resolver.

Resolves the Variables mapping through cache -> durable -> source of truth.
A source-of-truth read rebuilds the whole mapping and writes it through to
both tiers; that read is the only point where the authoritative copy enters
the system. Callers receive an immutable ConfigContext for the run.
"""

import asyncio
import json
from collections.abc import Iterable

from casework_notifier.infrastructure.observability.logging import get_logger
from casework_notifier.models.domain.config_domain import (
    REQUIRED_KEYS,
    ConfigContext,
    ConfigUnavailable,
    missing_keys,
    normalize_values,
)
from casework_notifier.services.config_store.tiers import ConfigTier
from casework_notifier.services.config_store.variables_sheet import (
    ConfigSourceError,
    VariablesSheetStore,
)

logger = get_logger(__name__)

CACHE_KEY = "globalVariables"
DURABLE_KEY = "globalVariablesJSON"


class ConfigurationResolver:
    def __init__(self, source: VariablesSheetStore, cache: ConfigTier, durable: ConfigTier):
        self._source = source
        self._cache = cache
        self._durable = durable
        self._lock = asyncio.Lock()

    @property
    def source(self) -> VariablesSheetStore:
        return self._source

    async def resolve(self, required_keys: Iterable[str] = REQUIRED_KEYS) -> ConfigContext:
        """
        Resolve configuration, falling through tiers until required keys are present.

        Raises:
            ConfigUnavailable: a required key is missing or empty after the
                source of truth has been read
        """
        required = set(required_keys)

        cached = await self._load(self._cache, CACHE_KEY)
        if cached:
            if not missing_keys(cached, required):
                logger.debug("Variables loaded from cache", variable_count=len(cached))
                return ConfigContext(cached, source="cache")
            logger.warning(
                "Cached variables incomplete", missing=sorted(missing_keys(cached, required))
            )

        durable = await self._load(self._durable, DURABLE_KEY)
        if durable:
            if not missing_keys(durable, required):
                await self._put(self._cache, CACHE_KEY, durable)
                logger.info("Variables loaded from durable store", variable_count=len(durable))
                return ConfigContext(durable, source="durable")
            logger.warning(
                "Durable variables incomplete", missing=sorted(missing_keys(durable, required))
            )

        logger.info("Falling back to Variables sheet")
        try:
            context = await self.refresh()
        except ConfigSourceError as e:
            logger.error("Failed to refresh variables from sheet", error=str(e))
            raise ConfigUnavailable(required) from e

        still_missing = missing_keys(context.values, required)
        if still_missing:
            logger.error("Critical variables missing", missing=sorted(still_missing))
            raise ConfigUnavailable(still_missing)

        return context

    async def refresh(self) -> ConfigContext:
        """
        Rebuild the mapping from the source of truth and write it through.

        Raises:
            ConfigSourceError: the Variables sheet could not be read
        """
        async with self._lock:
            return await self._refresh_locked()

    async def update_value(self, key: str, value: str) -> ConfigContext:
        """
        Overwrite (or append) one Variables row, then refresh both tiers.

        Serialized with refresh() so a scheduled refresh cannot write an
        older snapshot over the updated one.
        """
        key = (key or "").strip()
        value = (value or "").strip()
        if not key:
            raise ValueError("Variable key must not be empty")
        if not value:
            raise ValueError(f"Value for {key} must not be empty")

        async with self._lock:
            await self._source.upsert(key, value)
            await self._cache.invalidate(CACHE_KEY)
            await self._durable.invalidate(DURABLE_KEY)
            logger.info("Variable updated", key=key)
            return await self._refresh_locked()

    async def _refresh_locked(self) -> ConfigContext:
        values = await self._source.read_all()

        await self._put(self._cache, CACHE_KEY, values)
        await self._put(self._durable, DURABLE_KEY, values)

        logger.info("Refreshed variables from sheet", variable_count=len(values))
        return ConfigContext(values, source="sheet")

    async def _load(self, tier: ConfigTier, key: str) -> dict[str, str] | None:
        payload = await tier.get(key)
        if not payload:
            logger.debug("Tier empty", tier=tier.name)
            return None
        try:
            data = json.loads(payload)
        except ValueError as e:
            logger.warning("Discarding unreadable tier payload", tier=tier.name, error=str(e))
            return None
        if not isinstance(data, dict):
            logger.warning("Discarding non-mapping tier payload", tier=tier.name)
            return None
        return normalize_values(data)

    async def _put(self, tier: ConfigTier, key: str, values: dict[str, str]) -> None:
        ok = await tier.put(key, json.dumps(values))
        if not ok:
            logger.warning("Failed to write variables to tier", tier=tier.name)
