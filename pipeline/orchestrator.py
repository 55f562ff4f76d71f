"""
Pipeline Orchestrator - drives a video project through its stages.
Owns the project lifecycle, sequences the external services and persists
state after every transition.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from config import Settings, get_settings
from models.schemas import (
    DurationPreference,
    MediaCandidate,
    Project,
    ProjectStatus,
    TransitionStyle,
    VisualStyle,
)
from services.project_store import ProjectStore, project_store
from .errors import InvalidStage, InvalidTopic, NotFound, PipelineError, ProjectBusy, UpstreamUnavailable
from .media_aggregator import MediaAggregator
from .media_sources import GiphySource, MediaSource, PexelsSource
from .narrator import Narrator
from .script_generator import ScriptGenerator
from .selection_resolver import SelectionResolver
from .suitability_ranker import SuitabilityRanker
from .video_renderer import VideoRenderer

logger = logging.getLogger(__name__)

STAGE_LABELS = {
    ProjectStatus.SCRIPT_GENERATION: "Script generation",
    ProjectStatus.TTS_GENERATION: "TTS generation",
    ProjectStatus.MEDIA_SOURCING: "Media sourcing",
    ProjectStatus.MEDIA_EVALUATION: "Media evaluation",
    ProjectStatus.VIDEO_ASSEMBLY: "Video assembly",
}


class PipelineOrchestrator:
    """
    Orchestrates the video project pipeline.

    Pipeline stages:
    1. Script Generation (LLM)
    2. TTS Generation (ElevenLabs)
    3. Media Sourcing (Pexels + Giphy fan-out)
    4. Media Evaluation (suitability scoring)
    5. Video Assembly (caller selection + render service)

    Stages 1-4 run one per ``advance`` call. Assembly waits for an explicit
    selection through ``assemble``. Only one stage-advancing call may run per
    project at a time; a concurrent call fails with ProjectBusy.
    """

    def __init__(
        self,
        store: Optional[ProjectStore] = None,
        settings: Optional[Settings] = None,
        script_generator: Optional[ScriptGenerator] = None,
        narrator: Optional[Narrator] = None,
        media_sources: Optional[Sequence[MediaSource]] = None,
        ranker: Optional[SuitabilityRanker] = None,
        renderer: Optional[VideoRenderer] = None
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else project_store
        self.script_generator = script_generator or ScriptGenerator(self.settings)
        self.narrator = narrator or Narrator(self.settings)
        if media_sources is None:
            media_sources = [PexelsSource(self.settings), GiphySource(self.settings)]
        self.aggregator = MediaAggregator(media_sources, self.store, self.settings)
        self.ranker = ranker or SuitabilityRanker()
        self.resolver = SelectionResolver(self.store)
        self.renderer = renderer or VideoRenderer(self.settings)

        self._locks: Dict[str, asyncio.Lock] = {}
        self._stage_handlers: Dict[ProjectStatus, Callable[[Project], Awaitable[Project]]] = {
            ProjectStatus.SCRIPT_GENERATION: self._stage_script_generation,
            ProjectStatus.TTS_GENERATION: self._stage_tts_generation,
            ProjectStatus.MEDIA_SOURCING: self._stage_media_sourcing,
            ProjectStatus.MEDIA_EVALUATION: self._stage_media_evaluation,
        }

    # === Project operations ===

    def create_project(
        self,
        topic: str,
        duration_preference: Optional[DurationPreference] = None,
        voice_preference: Optional[str] = None,
        visual_style: Optional[VisualStyle] = None
    ) -> Project:
        """Create a project in the pending stage."""
        if not topic or not topic.strip():
            raise InvalidTopic("Topic is required")

        project = self.store.create_project(
            topic=topic.strip(),
            duration_preference=duration_preference,
            voice_preference=voice_preference,
            visual_style=visual_style or VisualStyle.MIXED
        )
        logger.info(f"Project created: {project.id} ({project.topic[:50]})")
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.store.get_project(project_id)
        if not project:
            raise NotFound(f"Project not found: {project_id}")
        return project

    def list_projects(self) -> List[Project]:
        return self.store.list_projects()

    def list_media(self, project_id: str, ranked: bool = False) -> List[MediaCandidate]:
        self.get_project(project_id)
        media = self.store.list_media(project_id)
        return self.ranker.rank(media) if ranked else media

    def force_status(
        self,
        project_id: str,
        status: ProjectStatus,
        error_message: Optional[str] = None
    ) -> Project:
        """Administrative override. Bypasses transition validation."""
        project = self.get_project(project_id)
        fields = {"status": status}
        if error_message is not None:
            fields["error_message"] = error_message

        updated = self.store.update_project(project_id, **fields)
        logger.warning(f"Project {project_id}: status forced {project.status.value} -> {status.value}")
        return updated

    def delete_project(self, project_id: str) -> bool:
        """Delete a project with its media and drop its lock."""
        self._locks.pop(project_id, None)
        return self.store.delete_project(project_id)

    # === Stage driving ===

    async def advance(self, project_id: str) -> Project:
        """
        Run the next automatic stage of a project.

        Terminal projects and projects waiting for a media selection are
        returned unchanged. A stage failure is persisted on the project
        (status failed) and re-raised.
        """
        self.get_project(project_id)
        # Shielded so an abandoned request still lets the stage finish and persist
        return await asyncio.shield(self._exclusive(project_id, self._advance_once))

    async def assemble(
        self,
        project_id: str,
        selected_media_ids: Sequence[str],
        transition_style: TransitionStyle = TransitionStyle.FADE,
        background_music: bool = False
    ) -> Project:
        """
        Resolve the caller's selection and render the final video.

        Selection errors leave the project untouched; a render failure moves
        it to failed. Selected flags are written before rendering and are kept
        even when the render fails.
        """
        self.get_project(project_id)
        return await asyncio.shield(self._exclusive(
            project_id,
            self._assemble_once,
            list(selected_media_ids),
            transition_style,
            background_music
        ))

    async def run_until_selection(self, project_id: str) -> Project:
        """
        Advance until the project waits for a selection or ends.

        Used for background runs: a stage error is already recorded on the
        project, so it is logged here and the current project returned.
        """
        while True:
            try:
                project = await self.advance(project_id)
            except PipelineError as e:
                logger.error(f"Project {project_id}: pipeline stopped: {e.message}")
                return self.store.get_project(project_id)

            if project.status.is_terminal or project.status == ProjectStatus.VIDEO_ASSEMBLY:
                return project

    async def _exclusive(self, project_id: str, operation: Callable[..., Awaitable[Project]], *args) -> Project:
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        if lock.locked():
            raise ProjectBusy(f"Project {project_id} already has a stage in progress")
        async with lock:
            return await operation(project_id, *args)

    async def _advance_once(self, project_id: str) -> Project:
        # Re-read so a retried call always acts on persisted state
        project = self.get_project(project_id)

        if project.status.is_terminal:
            logger.info(f"Project {project_id} is {project.status.value}; nothing to advance")
            return project

        if project.status == ProjectStatus.VIDEO_ASSEMBLY:
            logger.info(f"Project {project_id} is waiting for a media selection")
            return project

        if project.status == ProjectStatus.PENDING:
            project = self._transition(project, ProjectStatus.SCRIPT_GENERATION)

        handler = self._stage_handlers[project.status]
        return await self._run_stage(project, handler(project))

    async def _assemble_once(
        self,
        project_id: str,
        selected_media_ids: List[str],
        transition_style: TransitionStyle,
        background_music: bool
    ) -> Project:
        project = self.get_project(project_id)

        if project.status != ProjectStatus.VIDEO_ASSEMBLY:
            raise InvalidStage(
                f"Project {project_id} is {project.status.value}; "
                f"media selection is only accepted in {ProjectStatus.VIDEO_ASSEMBLY.value}"
            )

        # Selection errors are a malformed request, not a pipeline failure
        media = self.resolver.resolve(project_id, selected_media_ids)

        return await self._run_stage(
            project,
            self._stage_video_assembly(project, media, transition_style, background_music)
        )

    async def _run_stage(self, project: Project, stage: Awaitable[Project]) -> Project:
        """Await a stage; on any error record it on the project and re-raise."""
        label = STAGE_LABELS[project.status]
        try:
            return await stage
        except PipelineError as e:
            logger.error(f"Project {project.id}: {label} failed: {e.message}")
            self._handle_error(project.id, f"{label} failed: {e.message}")
            raise
        except Exception as e:
            logger.exception(f"Project {project.id}: {label} crashed: {e}")
            self._handle_error(project.id, f"{label} failed: {e}")
            raise

    # === Stages ===

    async def _stage_script_generation(self, project: Project) -> Project:
        """Stage 1: Write the narration script and keywords."""
        script = await self._call_external(
            self.script_generator.generate(project.topic, project.duration_preference),
            "Script generation",
            self.settings.script_timeout_seconds
        )

        logger.info(f"Project {project.id}: script generated with {len(script.keywords)} keywords")
        return self._transition(
            project,
            ProjectStatus.TTS_GENERATION,
            script_content=script.content,
            keywords=script.keywords,
            estimated_duration_seconds=script.estimated_duration_seconds
        )

    async def _stage_tts_generation(self, project: Project) -> Project:
        """Stage 2: Narrate the stored script."""
        audio_url = await self._call_external(
            self.narrator.narrate(project.script_content or "", project.voice_preference),
            "TTS generation",
            self.settings.tts_timeout_seconds
        )

        logger.info(f"Project {project.id}: narration ready at {audio_url}")
        return self._transition(project, ProjectStatus.MEDIA_SOURCING, audio_url=audio_url)

    async def _stage_media_sourcing(self, project: Project) -> Project:
        """Stage 3: Fan out media searches. Finding nothing is not fatal."""
        candidates = await self.aggregator.source_for_project(
            project.id,
            project.keywords or [],
            project.visual_style
        )

        if not candidates:
            logger.warning(f"Project {project.id}: no media found for keywords {project.keywords}")
        else:
            logger.info(f"Project {project.id}: {len(candidates)} media candidates sourced")
        return self._transition(project, ProjectStatus.MEDIA_EVALUATION)

    async def _stage_media_evaluation(self, project: Project) -> Project:
        """Stage 4: Score every unscored candidate."""
        unscored = [m for m in self.store.list_media(project.id) if not m.is_scored]

        for candidate in unscored:
            score, reason = self.ranker.score(candidate, project.script_content or "", candidate.keyword)
            self.store.set_media_score(candidate.id, score, reason)

        logger.info(f"Project {project.id}: scored {len(unscored)} media candidates")
        return self._transition(project, ProjectStatus.VIDEO_ASSEMBLY)

    async def _stage_video_assembly(
        self,
        project: Project,
        media: List[MediaCandidate],
        transition_style: TransitionStyle,
        background_music: bool
    ) -> Project:
        """Stage 5: Render the selected media over the narration."""
        video_url = await self._call_external(
            self.renderer.render(project.audio_url, media, transition_style, background_music),
            "Video assembly",
            self.settings.render_timeout_seconds
        )

        logger.info(f"Project {project.id}: pipeline complete! Video URL: {video_url}")
        return self._transition(project, ProjectStatus.COMPLETED, video_url=video_url)

    # === Helpers ===

    async def _call_external(self, call: Awaitable, operation_name: str, timeout: float):
        """Await an external call under a timeout. No retries."""
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            raise UpstreamUnavailable(f"{operation_name} timed out after {timeout:g}s")

    def _transition(self, project: Project, target: ProjectStatus, **fields) -> Project:
        """Validate and persist a status change together with its fields."""
        if not project.status.can_transition_to(target):
            raise InvalidStage(
                f"Illegal transition for project {project.id}: "
                f"{project.status.value} -> {target.value}"
            )

        updated = self.store.update_project(project.id, status=target, **fields)
        logger.info(f"Project {project.id}: {project.status.value} -> {target.value}")
        return updated

    def _handle_error(self, project_id: str, error_message: str):
        """Move a project to failed with the error recorded."""
        project = self.store.get_project(project_id)
        if not project or project.status.is_terminal:
            return
        self.store.update_project(project_id, status=ProjectStatus.FAILED, error_message=error_message)
        logger.error(f"Project {project_id} failed: {error_message}")
