"""
Project Store for video projects and their media candidates.
Uses in-memory dictionaries in place of the durable keyed store.
"""

import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from models.schemas import (
    DurationPreference,
    MediaCandidate,
    MediaDescriptor,
    Project,
    ProjectStatus,
    VisualStyle,
)


class ProjectStore:
    """
    Keyed store for Project and MediaCandidate records.

    Records are copied on the way in and out, so callers always work on a
    snapshot and every update is applied as a single replacement.
    """

    def __init__(self):
        self._projects: Dict[str, Project] = {}
        self._media: Dict[str, MediaCandidate] = {}

    # === Projects ===

    def create_project(
        self,
        topic: str,
        duration_preference: Optional[DurationPreference] = None,
        voice_preference: Optional[str] = None,
        visual_style: VisualStyle = VisualStyle.MIXED
    ) -> Project:
        """Create a new project in the pending stage."""
        project_id = f"prj_{uuid.uuid4().hex[:12]}"
        now = datetime.utcnow()

        project = Project(
            id=project_id,
            topic=topic,
            duration_preference=duration_preference,
            voice_preference=voice_preference or None,
            visual_style=visual_style,
            status=ProjectStatus.PENDING,
            created_at=now,
            updated_at=now
        )

        self._projects[project_id] = project
        return project.model_copy(deep=True)

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a project by ID."""
        project = self._projects.get(project_id)
        return project.model_copy(deep=True) if project else None

    def list_projects(self) -> List[Project]:
        """All projects, newest-created first."""
        # Reverse insertion order first so ties on created_at stay newest-first
        projects = list(reversed(list(self._projects.values())))
        projects.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in projects]

    def update_project(self, project_id: str, **fields) -> Optional[Project]:
        """Apply all given fields at once and bump updated_at."""
        project = self._projects.get(project_id)
        if not project:
            return None

        unknown = set(fields) - set(Project.model_fields)
        if unknown:
            raise AttributeError(f"Unknown project fields: {', '.join(sorted(unknown))}")

        fields["updated_at"] = datetime.utcnow()
        updated = project.model_copy(update=fields, deep=True)
        self._projects[project_id] = updated
        return updated.model_copy(deep=True)

    def delete_project(self, project_id: str) -> bool:
        """Delete a project and cascade to its media."""
        if project_id not in self._projects:
            return False
        del self._projects[project_id]
        for media_id in [m.id for m in self._media.values() if m.project_id == project_id]:
            del self._media[media_id]
        return True

    # === Media candidates ===

    def add_media(
        self,
        project_id: str,
        items: Iterable[Tuple[str, MediaDescriptor]]
    ) -> List[MediaCandidate]:
        """
        Persist a batch of (keyword, MediaDescriptor) pairs for a project.

        Returns the created candidates in input order.
        """
        if project_id not in self._projects:
            raise KeyError(f"Project {project_id} does not exist")

        created = []
        for keyword, descriptor in items:
            candidate = MediaCandidate(
                id=f"med_{uuid.uuid4().hex[:12]}",
                project_id=project_id,
                kind=descriptor.kind,
                provider=descriptor.provider,
                provider_id=descriptor.provider_id,
                url=descriptor.url,
                thumbnail_url=descriptor.thumbnail_url,
                keyword=keyword
            )
            self._media[candidate.id] = candidate
            created.append(candidate.model_copy())
        return created

    def get_media(self, media_id: str) -> Optional[MediaCandidate]:
        media = self._media.get(media_id)
        return media.model_copy() if media else None

    def list_media(self, project_id: str) -> List[MediaCandidate]:
        """Media for a project in creation order."""
        return [m.model_copy() for m in self._media.values() if m.project_id == project_id]

    def set_media_score(self, media_id: str, score: int, reason: str) -> MediaCandidate:
        """Record a suitability score. A candidate can only be scored once."""
        media = self._media.get(media_id)
        if not media:
            raise KeyError(f"Media item {media_id} not found")
        if media.is_scored:
            raise ValueError(f"Media item {media_id} is already scored")

        updated = media.model_copy(update={
            "suitability_score": score,
            "suitability_reason": reason
        })
        self._media[media_id] = updated
        return updated.model_copy()

    def set_selected(self, project_id: str, media_ids: Iterable[str]) -> None:
        """
        Mark exactly the given media of a project as selected.

        Flags on the project's other media are cleared, so they always show
        the last attempted selection. They are not rolled back when the
        render that follows fails.
        """
        chosen = set(media_ids)
        for media_id, media in list(self._media.items()):
            if media.project_id != project_id:
                continue
            selected = media_id in chosen
            if media.is_selected != selected:
                self._media[media_id] = media.model_copy(update={"is_selected": selected})


# Singleton instance
project_store = ProjectStore()
