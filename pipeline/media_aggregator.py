"""
Media Aggregator - fans media searches out across sources and keywords,
then merges, deduplicates and persists the results.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from config import Settings, get_settings
from models.schemas import (
    STYLE_KINDS,
    MediaCandidate,
    MediaDescriptor,
    MediaKind,
    VisualStyle,
)
from services.project_store import ProjectStore
from .media_sources import MediaSource

logger = logging.getLogger(__name__)


class MediaAggregator:
    """
    Sources candidate media for a project.

    Issues one search per (keyword, kind, source) concurrently, each under its
    own timeout. A call that times out or raises yields no results and does
    not affect the others.
    """

    def __init__(
        self,
        sources: Sequence[MediaSource],
        store: ProjectStore,
        settings: Optional[Settings] = None
    ):
        self.sources = list(sources)
        self.store = store
        self.settings = settings or get_settings()
        self.search_timeout = self.settings.search_timeout_seconds

    def plan_searches(
        self,
        keywords: Sequence[str],
        visual_style: VisualStyle
    ) -> List[Tuple[str, MediaKind, MediaSource]]:
        """The ordered list of searches to run for these keywords."""
        plan = []
        for keyword in keywords:
            for kind in STYLE_KINDS[visual_style]:
                for source in self.sources:
                    if source.supports(kind):
                        plan.append((keyword, kind, source))
        return plan

    async def _search_one(self, keyword: str, kind: MediaKind, source: MediaSource) -> List[MediaDescriptor]:
        name = source.provider.value
        try:
            return await asyncio.wait_for(source.search(keyword, kind), timeout=self.search_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"[{name}] {kind.value} search for '{keyword}' timed out after {self.search_timeout}s"
            )
        except Exception as e:
            logger.warning(f"[{name}] {kind.value} search for '{keyword}' failed: {e}")
        return []

    async def collect(
        self,
        keywords: Sequence[str],
        visual_style: VisualStyle,
        seen: Optional[set] = None
    ) -> List[Tuple[str, MediaDescriptor]]:
        """
        Run every planned search and merge the results.

        Returns (keyword, descriptor) pairs in plan order with each
        (provider, provider id) pair kept once; pairs in ``seen`` are dropped.
        """
        plan = self.plan_searches(keywords, visual_style)
        if not plan:
            return []

        logger.info(f"Running {len(plan)} media searches for {len(keywords)} keywords ({visual_style.value})")
        results = await asyncio.gather(*(self._search_one(k, kind, src) for k, kind, src in plan))

        seen = set(seen or ())
        merged = []
        duplicates = 0
        for (keyword, _, _), descriptors in zip(plan, results):
            for descriptor in descriptors:
                if descriptor.dedup_key in seen:
                    duplicates += 1
                    continue
                seen.add(descriptor.dedup_key)
                merged.append((keyword, descriptor))

        logger.info(f"Merged {len(merged)} unique media items ({duplicates} duplicates dropped)")
        return merged

    async def source_for_project(
        self,
        project_id: str,
        keywords: Sequence[str],
        visual_style: VisualStyle
    ) -> List[MediaCandidate]:
        """Collect media for a project and persist it as unscored candidates."""
        existing = {m.dedup_key for m in self.store.list_media(project_id)}
        merged = await self.collect(keywords, visual_style, seen=existing)
        return self.store.add_media(project_id, merged)
