"""Error types raised by recommender build and destroy requests."""

from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable category of a failed request."""

    VALIDATION = "validation"
    CATALOG_STATE = "catalog_state"
    BACKEND = "backend"
    CANCELLED = "cancelled"


class RecommenderError(Exception):
    """Base class for every fatal recommender error."""

    kind: ErrorKind = ErrorKind.BACKEND

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class RequestValidationError(RecommenderError):
    """Request is malformed or references missing source objects."""

    kind = ErrorKind.VALIDATION


class CatalogStateError(RecommenderError):
    """Recommender already exists, does not exist, or the catalog is missing."""

    kind = ErrorKind.CATALOG_STATE


class BackendFailureError(RecommenderError):
    """The database engine or the modeling backend failed."""

    kind = ErrorKind.BACKEND


class ArtifactCleanupError(BackendFailureError):
    """
    One or more cell artifacts could not be dropped.

    Raised after every other destroy step has run, so the catalog no
    longer references the recommender.
    """

    def __init__(self, message: str, failures: list[tuple[str, str]]):
        super().__init__(message)
        self.failures = failures


class RequestCancelledError(RecommenderError):
    """The request was cancelled or ran past its deadline."""

    kind = ErrorKind.CANCELLED
