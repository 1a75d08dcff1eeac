"""Repository error taxonomy.

Route and tool handlers map these to HTTP statuses / tool errors; the
repositories never deal with transport concerns.
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """A referenced book, member, reservation, loan, fine or setting does not exist."""


class InvalidStateError(RepositoryException):
    """The operation is not permitted given the current status of an entity."""


class ConflictError(RepositoryException):
    """The operation would duplicate something that must be unique."""


class DuplicateError(ConflictError):
    """Raised when attempting to create a duplicate entity."""


class LimitExceededError(RepositoryException):
    """A per-member or per-loan limit has been reached."""
