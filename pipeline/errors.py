"""
Pipeline error kinds.

Every error raised by a stage, an adapter or the selection resolver derives
from PipelineError. The API layer maps ``status_code`` onto the HTTP response.
"""

from typing import Iterable, List, Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    kind = "PipelineError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class InvalidTopic(PipelineError):
    kind = "InvalidTopic"
    status_code = 400


class EmptyInput(PipelineError):
    kind = "EmptyInput"
    status_code = 400


class UpstreamUnavailable(PipelineError):
    """An external service could not be reached, failed, or timed out."""
    kind = "UpstreamUnavailable"
    status_code = 502


class UpstreamRejected(PipelineError):
    """An external service refused the request (e.g. unknown voice id)."""
    kind = "UpstreamRejected"
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["upstream_status"] = self.upstream_status
        return data


class InsufficientMedia(PipelineError):
    kind = "InsufficientMedia"
    status_code = 400


class RenderingFailed(PipelineError):
    kind = "RenderingFailed"
    status_code = 502


class UnknownCandidate(PipelineError):
    """One or more selected ids do not exist or belong to another project."""
    kind = "UnknownCandidate"
    status_code = 400

    def __init__(self, candidate_ids: Iterable[str], project_id: str):
        self.candidate_ids: List[str] = list(candidate_ids)
        super().__init__(
            f"Media items not found or don't belong to project {project_id}: "
            f"{', '.join(self.candidate_ids)}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["candidate_ids"] = self.candidate_ids
        return data


class EmptySelection(PipelineError):
    kind = "EmptySelection"
    status_code = 400

    def __init__(self, message: str = "At least one media item must be selected for video assembly"):
        super().__init__(message)


class NotFound(PipelineError):
    kind = "NotFound"
    status_code = 404


class InvalidStage(PipelineError):
    """The operation is not allowed in the project's current stage."""
    kind = "InvalidStage"
    status_code = 409


class ProjectBusy(PipelineError):
    """Another stage-advancing operation is already running for the project."""
    kind = "ProjectBusy"
    status_code = 409
