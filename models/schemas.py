"""
Pydantic schemas for API requests, responses, and internal data models.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, field_validator


# === Enums ===

class ProjectStatus(str, Enum):
    """Pipeline stages, declared in pipeline order."""
    PENDING = "pending"
    SCRIPT_GENERATION = "script_generation"
    TTS_GENERATION = "tts_generation"
    MEDIA_SOURCING = "media_sourcing"
    MEDIA_EVALUATION = "media_evaluation"
    VIDEO_ASSEMBLY = "video_assembly"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def order(self) -> int:
        """Position in the pipeline. FAILED sorts after every other stage."""
        return STATUS_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (ProjectStatus.COMPLETED, ProjectStatus.FAILED)

    def can_transition_to(self, target: "ProjectStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


STATUS_ORDER: List[ProjectStatus] = list(ProjectStatus)

_FORWARD: Dict[ProjectStatus, ProjectStatus] = {
    ProjectStatus.PENDING: ProjectStatus.SCRIPT_GENERATION,
    ProjectStatus.SCRIPT_GENERATION: ProjectStatus.TTS_GENERATION,
    ProjectStatus.TTS_GENERATION: ProjectStatus.MEDIA_SOURCING,
    ProjectStatus.MEDIA_SOURCING: ProjectStatus.MEDIA_EVALUATION,
    ProjectStatus.MEDIA_EVALUATION: ProjectStatus.VIDEO_ASSEMBLY,
    ProjectStatus.VIDEO_ASSEMBLY: ProjectStatus.COMPLETED,
}

ALLOWED_TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
    status: frozenset({nxt, ProjectStatus.FAILED})
    for status, nxt in _FORWARD.items()
}
ALLOWED_TRANSITIONS[ProjectStatus.COMPLETED] = frozenset()
ALLOWED_TRANSITIONS[ProjectStatus.FAILED] = frozenset()


class DurationPreference(str, Enum):
    """Target narration length."""
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def target_seconds(self) -> int:
        return {"short": 30, "medium": 60, "long": 120}[self.value]


class VisualStyle(str, Enum):
    """Which kinds of media to source."""
    IMAGES = "images"
    VIDEOS = "videos"
    MIXED = "mixed"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    ANIMATED_LOOP = "gif"


class MediaProvider(str, Enum):
    PEXELS = "pexels"
    GIPHY = "giphy"


class TransitionStyle(str, Enum):
    FADE = "fade"
    SLIDE = "slide"
    CUT = "cut"


# Kinds searched per keyword for each visual style
STYLE_KINDS: Dict[VisualStyle, List[MediaKind]] = {
    VisualStyle.IMAGES: [MediaKind.IMAGE],
    VisualStyle.VIDEOS: [MediaKind.VIDEO],
    VisualStyle.MIXED: [MediaKind.IMAGE, MediaKind.ANIMATED_LOOP],
}


# === API Request/Response Models ===

class CreateProjectRequest(BaseModel):
    """Request body for POST /projects."""
    topic: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Educational topic the video should explain"
    )
    duration_preference: Optional[DurationPreference] = Field(
        default=None,
        description="short (~30s), medium (~60s) or long (~120s)"
    )
    voice_preference: Optional[str] = Field(
        default=None,
        description="Narrator voice id"
    )
    visual_style: VisualStyle = Field(
        default=VisualStyle.MIXED,
        description="images, videos or mixed"
    )

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Topic is required")
        return value


class AssembleRequest(BaseModel):
    """Request body for POST /projects/{id}/assemble."""
    selected_media_ids: List[str] = Field(
        default_factory=list,
        description="Candidate ids in timeline order"
    )
    transition_style: TransitionStyle = TransitionStyle.FADE
    background_music: bool = False


class ForceStatusRequest(BaseModel):
    """Request body for PATCH /projects/{id}/status."""
    status: ProjectStatus
    error_message: Optional[str] = None


class RunResponse(BaseModel):
    """Response body for POST /projects/{id}/run."""
    project_id: str
    status: ProjectStatus
    message: str


# === Internal Data Models ===

class ScriptResult(BaseModel):
    """Output of the script writer."""
    content: str
    keywords: List[str] = Field(default_factory=list)
    estimated_duration_seconds: int = 0


class MediaDescriptor(BaseModel):
    """A raw search hit as returned by a media source."""
    kind: MediaKind
    provider: MediaProvider
    provider_id: str
    url: str
    thumbnail_url: Optional[str] = None

    @property
    def dedup_key(self) -> tuple:
        return (self.provider, self.provider_id)


class Project(BaseModel):
    """Complete state for a video project."""
    id: str
    topic: str
    status: ProjectStatus = ProjectStatus.PENDING
    duration_preference: Optional[DurationPreference] = None
    voice_preference: Optional[str] = None
    visual_style: VisualStyle = VisualStyle.MIXED

    # Generated data
    script_content: Optional[str] = None
    keywords: Optional[List[str]] = None
    estimated_duration_seconds: Optional[int] = None
    audio_url: Optional[str] = None

    # Output
    video_url: Optional[str] = None

    # Error handling
    error_message: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class MediaCandidate(BaseModel):
    """A sourced piece of media considered for the final video."""
    id: str
    project_id: str
    kind: MediaKind
    provider: MediaProvider
    provider_id: str
    url: str
    thumbnail_url: Optional[str] = None
    keyword: str
    suitability_score: Optional[int] = Field(default=None, ge=0, le=100)
    suitability_reason: Optional[str] = None
    is_selected: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_scored(self) -> bool:
        return self.suitability_score is not None

    @property
    def dedup_key(self) -> tuple:
        return (self.provider, self.provider_id)
