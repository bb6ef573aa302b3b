"""
Metadata Repository.

Session-scoped cache of entity descriptions. The catalogue comes from one
bulk describe; each entity is enriched by a full describe the first time a
feature asks for it and is never re-fetched afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from .types import SObject
from ..services.base import DescribeService, QueryService

logger = logging.getLogger(__name__)


class MetadataRepository:
    """
    Single entry point for describe lookups.

    Concurrent ``describe`` calls for the same entity share one in-flight
    task. Failed describes are not cached, so the user can retry.

    Example:
        ```python
        repo = MetadataRepository(client, client)
        await repo.load_entities()
        account = await repo.describe("Account")
        ```
    """

    def __init__(self, describe_service: DescribeService, query_service: QueryService):
        self._describe_service = describe_service
        self._query_service = query_service
        self._entities: Dict[str, SObject] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._catalogue_loaded = False

    # =========================================================================
    # Catalogue
    # =========================================================================

    async def load_entities(self) -> List[SObject]:
        """Load the entity catalogue (no fields) once per session."""
        if self._catalogue_loaded:
            return self.list_entities()

        entities = await self._describe_service.describe_all_entities()
        for entity in entities:
            # Never replace an entity that was already described.
            existing = self._entities.get(entity.api_name)
            if existing is None or not existing.described:
                self._entities[entity.api_name] = entity
        self._catalogue_loaded = True
        logger.info(f"Loaded {len(entities)} entities")
        return self.list_entities()

    def list_entities(self) -> List[SObject]:
        return list(self._entities.values())

    def get_cached(self, name: str) -> Optional[SObject]:
        return self._entities.get(name)

    def search(self, term: str) -> List[SObject]:
        """Filter the catalogue by label or api name, case-insensitive."""
        needle = term.lower()
        return [
            e for e in self._entities.values()
            if needle in e.label.lower() or needle in e.api_name.lower()
        ]

    def partition(self) -> Tuple[List[SObject], List[SObject]]:
        """Split the catalogue into (standard, custom) entities."""
        standard = [e for e in self._entities.values() if not e.is_custom]
        custom = [e for e in self._entities.values() if e.is_custom]
        return standard, custom

    # =========================================================================
    # Describe
    # =========================================================================

    async def describe(self, name: str) -> SObject:
        """
        Return the fully described entity, fetching it at most once.

        Raises:
            TransportError: If the describe call itself fails.
        """
        cached = self._entities.get(name)
        if cached is not None and cached.described:
            return cached

        task = self._in_flight.get(name)
        if task is None:
            task = asyncio.ensure_future(self._fetch(name))
            self._in_flight[name] = task
            task.add_done_callback(lambda _t, n=name: self._in_flight.pop(n, None))
        else:
            logger.debug(f"Joining in-flight describe for {name}")

        return await asyncio.shield(task)

    async def _fetch(self, name: str) -> SObject:
        logger.debug(f"Describing {name}")
        description = await self._describe_service.describe_entity(name)
        record_count = await self._count_records(name)

        base = self._entities.get(name) or SObject(api_name=name, label=description.label or name)
        enriched = base.model_copy(update={
            "fields": description.fields,
            "child_relationships": description.child_relationships,
            "record_count": record_count,
            "described": True,
        })
        self._entities[name] = enriched
        return enriched

    async def _count_records(self, name: str) -> int:
        try:
            result = await self._query_service.run_query(f"SELECT count() FROM {name}")
            return result.total_size
        except Exception as e:
            logger.warning(f"Could not fetch record count for {name}: {e}")
            return 0
