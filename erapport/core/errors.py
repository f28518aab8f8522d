# erapport/core/errors.py - Domain exceptions raised by services and translated by routers


class ERapportError(Exception):
    """Base class for errors raised by the report services"""


class ValidationFailure(ERapportError):
    """An operation was rejected before anything was applied"""


class NotFoundError(ERapportError):
    """A referenced school year, module, template or report does not exist"""


class ConflictError(ERapportError):
    """A uniqueness rule would be broken (duplicate email, school year label, ...)"""


class PersistenceError(ERapportError):
    """The replace-all transaction failed and was rolled back"""


__all__ = [
    "ERapportError",
    "ValidationFailure",
    "NotFoundError",
    "ConflictError",
    "PersistenceError",
]
