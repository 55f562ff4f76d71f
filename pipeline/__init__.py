"""Pipeline package for the Topic-to-Video Pipeline."""

from .script_generator import ScriptGenerator
from .narrator import Narrator
from .media_sources import MediaSource, PexelsSource, GiphySource
from .media_aggregator import MediaAggregator
from .suitability_ranker import SuitabilityRanker
from .selection_resolver import SelectionResolver
from .video_renderer import VideoRenderer
from .orchestrator import PipelineOrchestrator

__all__ = [
    "ScriptGenerator",
    "Narrator",
    "MediaSource",
    "PexelsSource",
    "GiphySource",
    "MediaAggregator",
    "SuitabilityRanker",
    "SelectionResolver",
    "VideoRenderer",
    "PipelineOrchestrator",
]
