"""Error taxonomy shared by the ledger, claim and webhook paths.

Every error carries the HTTP status it maps to so the API layer can
translate it without knowing which subsystem raised it.
"""


class RetentionError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(RetentionError):
    """Malformed input."""

    status_code = 400
    code = "validation_error"


class AuthError(RetentionError):
    """Caller is not authenticated."""

    status_code = 401
    code = "unauthorized"


class PermissionDeniedError(AuthError):
    """Caller is authenticated but not allowed to act on the resource."""

    status_code = 403
    code = "forbidden"


class NotFoundError(RetentionError):
    """Unknown membership or company."""

    status_code = 404
    code = "not_found"


class ConflictError(RetentionError):
    """Offer already claimed for this membership."""

    status_code = 409
    code = "already_claimed"


class InsufficientCreditsError(RetentionError):
    """No credits remaining."""

    status_code = 402
    code = "no_credits"

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"No credits remaining for company {company_id}")


class SignatureError(RetentionError):
    """Webhook signature missing or invalid."""

    status_code = 401
    code = "invalid_signature"


class DependencyError(RetentionError):
    """Storage or external API failure."""

    status_code = 503
    code = "dependency_error"


class StoreNotConfiguredError(DependencyError):
    """Database has not been initialised."""

    code = "store_not_configured"


class WhopNotConfiguredError(DependencyError):
    """Whop client has not been initialised."""

    code = "whop_not_configured"


class RefundFailedError(DependencyError):
    """A reserved credit could not be returned after a failed claim.

    The ledger is short one credit for the company until an operator
    reconciles it.
    """

    status_code = 500
    code = "refund_failed"

    def __init__(self, company_id: str, membership_id: str):
        self.company_id = company_id
        self.membership_id = membership_id
        super().__init__(
            f"Failed to apply discount and failed to refund credit for company {company_id}"
        )
