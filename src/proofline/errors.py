"""Exception types raised inside the pipeline."""


class ProoflineError(Exception):
    """Base class for Proofline errors."""


class PathDenied(ProoflineError):
    """A filesystem access fell outside the allowed roots."""

    def __init__(self, path: str):
        super().__init__(f"Path blocked by whitelist: {path}")
        self.path = path


class MalformedInput(ProoflineError, ValueError):
    """A batch file or payload could not be parsed at all."""


class EnrichmentFailure(ProoflineError):
    """The optional LLM summarizer failed or returned nothing usable."""
