"""
Selection Resolver - validates a caller's media choice and fixes the
timeline order handed to rendering.
"""

import logging
from typing import List, Sequence

from models.schemas import MediaCandidate
from services.project_store import ProjectStore
from .errors import EmptySelection, UnknownCandidate

logger = logging.getLogger(__name__)


class SelectionResolver:
    """
    Resolves explicit candidate ids into the ordered media list.

    There is no automatic fallback: scores are advisory and the caller always
    decides what goes into the video.
    """

    def __init__(self, store: ProjectStore):
        self.store = store

    def resolve(self, project_id: str, candidate_ids: Sequence[str]) -> List[MediaCandidate]:
        """
        Validate the selection, mark it selected and return it in caller order.

        Raises:
            EmptySelection: If no ids were given
            UnknownCandidate: Listing every id that is missing or owned by another project
        """
        if not candidate_ids:
            raise EmptySelection()

        owned = {m.id: m for m in self.store.list_media(project_id)}
        unknown = [cid for cid in dict.fromkeys(candidate_ids) if cid not in owned]
        if unknown:
            raise UnknownCandidate(unknown, project_id)

        self.store.set_selected(project_id, candidate_ids)

        ordered = [self.store.get_media(cid) for cid in candidate_ids]
        logger.info(f"Project {project_id}: selected {len(ordered)} media items")
        return ordered
