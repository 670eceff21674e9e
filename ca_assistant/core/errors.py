"""
Error taxonomy for the request pipeline.

Only ``Rejected`` errors and an unrecovered ``GenerationFailed`` ever reach
the client.  ``RetrievalFailure`` and ``FramingAnomaly`` are absorbed by the
component that detects them.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every pipeline condition."""

    status_code: int = 500
    public_message: str = "Internal Error"


class Rejected(PipelineError):
    """Input refused before any expensive work was done."""


class InputError(Rejected):
    status_code = 400
    public_message = "Invalid request"


class EmptyInput(InputError):
    public_message = "Empty query"


class PolicyViolation(Rejected):
    status_code = 403
    public_message = "Forbidden"


class InjectionSuspected(PolicyViolation):
    def __init__(self, pattern: str):
        super().__init__(f"query matched injection pattern {pattern!r}")
        self.pattern = pattern


class RetrievalFailure(PipelineError):
    """Vector search failed; the retriever degrades to empty context."""


class GenerationFailed(PipelineError):
    """Generation backend error or timeout.  Never retried."""


class FramingAnomaly(PipelineError):
    """A backend stream event could not be parsed yet."""
