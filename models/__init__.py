"""Models package for the Topic-to-Video Pipeline."""

from .schemas import (
    ALLOWED_TRANSITIONS,
    STATUS_ORDER,
    STYLE_KINDS,
    AssembleRequest,
    CreateProjectRequest,
    DurationPreference,
    ForceStatusRequest,
    MediaCandidate,
    MediaDescriptor,
    MediaKind,
    MediaProvider,
    Project,
    ProjectStatus,
    RunResponse,
    ScriptResult,
    TransitionStyle,
    VisualStyle,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "STATUS_ORDER",
    "STYLE_KINDS",
    "AssembleRequest",
    "CreateProjectRequest",
    "DurationPreference",
    "ForceStatusRequest",
    "MediaCandidate",
    "MediaDescriptor",
    "MediaKind",
    "MediaProvider",
    "Project",
    "ProjectStatus",
    "RunResponse",
    "ScriptResult",
    "TransitionStyle",
    "VisualStyle",
]
