"""Error taxonomy for the digest pipeline.

Every stage failure aborts the whole run; no partial digest is produced.
Each error names the stage it came from so callers can log it and decide
whether to retry the entire ``generate_digest`` call.
"""

from __future__ import annotations

from enum import StrEnum

_RAW_OUTPUT_LIMIT = 2000


class PipelineStage(StrEnum):
    """Stages of a digest run, in execution order."""

    BATCHING = "batching"
    MAPPING = "mapping"
    CLUSTERING = "clustering"
    SYNTHESIZING = "synthesizing"
    REDUCING = "reducing"


class DigestError(Exception):
    """Base error for a failed digest run."""

    default_stage: PipelineStage = PipelineStage.BATCHING

    def __init__(
        self,
        message: str,
        *,
        stage: PipelineStage | None = None,
        identifier: str | int | None = None,
        raw_output: str | None = None,
    ) -> None:
        self.stage = stage or self.default_stage
        self.identifier = identifier
        self.raw_output = raw_output[:_RAW_OUTPUT_LIMIT] if raw_output else raw_output
        where = f" [{identifier}]" if identifier is not None else ""
        super().__init__(f"{self.stage}{where}: {message}")


class EmptyInputError(DigestError):
    """No content items were supplied."""


class ExtractionError(DigestError):
    """Map-phase output could not be turned into beats."""

    default_stage = PipelineStage.MAPPING


class SynthesisError(DigestError):
    """Cluster-brief output was not a valid brief."""

    default_stage = PipelineStage.SYNTHESIZING


class CollaboratorError(DigestError):
    """The model-call collaborator itself failed."""


class ReductionError(CollaboratorError):
    """The final reduce call failed."""

    default_stage = PipelineStage.REDUCING


class PromptTemplateError(DigestError):
    """A prompt template does not fit the stage that renders it."""
