"""Map-reduce narrative digest pipeline.

batch -> extract beats -> cluster -> brief per cluster -> reduce to one script.
"""

from daybrief.digest.errors import (
    CollaboratorError,
    DigestError,
    EmptyInputError,
    ExtractionError,
    PipelineStage,
    PromptTemplateError,
    ReductionError,
    SynthesisError,
)
from daybrief.digest.models import (
    Beat,
    Cluster,
    ClusterBrief,
    ContentItem,
    ContentSource,
    DigestContext,
    DigestSettings,
    PromptTemplates,
)
from daybrief.digest.orchestrator import DigestOrchestrator, DigestRun, RunState

__all__ = [
    "Beat",
    "Cluster",
    "ClusterBrief",
    "CollaboratorError",
    "ContentItem",
    "ContentSource",
    "DigestContext",
    "DigestError",
    "DigestOrchestrator",
    "DigestRun",
    "DigestSettings",
    "EmptyInputError",
    "ExtractionError",
    "PipelineStage",
    "PromptTemplateError",
    "PromptTemplates",
    "ReductionError",
    "RunState",
    "SynthesisError",
]
