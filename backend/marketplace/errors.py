# Overview: Typed failures raised by the service layer and mapped to HTTP status codes by routes.


class MarketplaceError(Exception):
    """Base for every expected service-layer failure."""

    status_code = 400


class NotFoundError(MarketplaceError):
    """Referenced bill, product, vendor or partner does not exist."""

    status_code = 404


class InvalidInputError(MarketplaceError, ValueError):
    """Missing/malformed fields, unknown enum values, bad amounts."""

    status_code = 400


class InvalidStateError(MarketplaceError):
    """Operation not allowed from the entity's current lifecycle state."""

    status_code = 409


class AuthenticationError(MarketplaceError):
    """Unknown account or wrong password."""

    status_code = 401


class AccountBlockedError(AuthenticationError):
    """Credentials may be fine, but the account lifecycle forbids a session."""

    status_code = 403


class PendingApprovalError(AccountBlockedError):
    pass


class RejectedError(AccountBlockedError):
    pass


class StorageFailureError(MarketplaceError):
    """The database was unreachable or a write did not commit."""

    status_code = 503
