# classifieds/exceptions.py
"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class AuthenticationError(ServiceError):
    """Missing, malformed or unresolvable credential."""


class AuthorizationError(ServiceError):
    """Valid identity lacking the required role or ownership."""


class NotFoundError(ServiceError):
    pass


class PreconditionError(ServiceError):
    """The target is not in a state that allows the requested action."""


class LimitExceededError(ServiceError):
    pass


class PersistenceError(ServiceError):
    pass


class StorageError(ServiceError):
    pass


class IdentityProviderError(ServiceError):
    pass
