"""
Error types raised by the scoring and reconciliation engine.

Every error carries the HTTP status the API layer answers with, so routes
and the CLI can report failures without knowing which operation raised them.
"""


class ScoringError(Exception):
    """Base class for all engine errors"""

    status_code = 500
    retryable = False

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message, "retryable": self.retryable}


class ValidationError(ScoringError):
    """Malformed input, rejected before anything is staged"""

    status_code = 400


class NotFoundError(ScoringError):
    """A fixture, prediction or season id that does not exist"""

    status_code = 404


class PreconditionError(ScoringError):
    """The request is well formed but the current state does not allow it"""

    status_code = 409


class PartialCommitError(ScoringError):
    """
    A chunked batch failed part way through.

    Chunks ``1..committed_chunks`` are durable, the rest were never attempted.
    Every ledger operation is idempotent, so the caller retries the whole
    top-level operation.
    """

    status_code = 503
    retryable = True

    def __init__(self, message, committed_chunks=0, total_chunks=0):
        super().__init__(message)
        self.committed_chunks = committed_chunks
        self.total_chunks = total_chunks

    def to_dict(self):
        data = super().to_dict()
        data["committed_chunks"] = self.committed_chunks
        data["total_chunks"] = self.total_chunks
        return data
