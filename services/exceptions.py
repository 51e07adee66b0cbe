class DocumentIntakeError(Exception):
    """Base class for errors raised by the document intake services."""


class CallerInputError(DocumentIntakeError):
    """Missing file, empty file or a missing/malformed document type."""


class AnalysisError(DocumentIntakeError):
    """
    The document could not be turned into a field map.
    Callers report one generic message for every subclass.
    """


class ModelInvocationError(AnalysisError):
    """The external model call failed (network, status, auth, quota, envelope)."""


class ResponseParseError(AnalysisError):
    """The model answered, but not with a JSON object."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class SessionOperationError(DocumentIntakeError):
    """The session store failed to destroy or update a record."""
