"""
Error Taxonomy

Every failure that can reach a client is one of these. Components raise them,
the API layer maps them to a status code and a public message. Detail meant
for operators stays in the logs.
"""


class DeckSlayerError(Exception):
    """Base class for errors with an HTTP mapping."""

    status_code: int = 500
    public_message: str = "Request failed"

    def __init__(self, message: str | None = None, detail: str | None = None):
        self.public_message = message or self.public_message
        self.detail = detail
        super().__init__(detail or self.public_message)


class AuthenticationRequiredError(DeckSlayerError):
    status_code = 401
    public_message = "Authentication required"


class ForbiddenError(DeckSlayerError):
    status_code = 403
    public_message = "Forbidden"


class NotFoundError(DeckSlayerError):
    status_code = 404
    public_message = "Not found"


class InsufficientCreditsError(DeckSlayerError):
    """Raised when the ledger balance is below the cost of the operation."""

    status_code = 402
    public_message = "Insufficient credits. Audit Protocol required."

    def __init__(self, required: int, balance: int, message: str | None = None):
        self.required = required
        self.balance = balance
        super().__init__(message, detail=f"required={required} balance={balance}")


class InvalidInputError(DeckSlayerError):
    status_code = 400
    public_message = "Invalid input"


class RateLimitedError(DeckSlayerError):
    status_code = 429
    public_message = "Rate limit exceeded. Please wait before trying again."

    def __init__(self, retry_after: int, limit: int, reset_in_ms: int):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_in_ms = reset_in_ms
        super().__init__(detail=f"retry_after={retry_after}s")


class UpstreamError(DeckSlayerError):
    """Provider or datastore failure. Clients only ever see the generic message."""

    status_code = 500
    public_message = "Analysis failed"


class SchemaValidationError(UpstreamError):
    """Model output could not be coerced into the target schema."""

    def __init__(self, schema_name: str, detail: str, raw_preview: str = ""):
        self.schema_name = schema_name
        self.raw_preview = raw_preview
        super().__init__(detail=f"{schema_name} validation failed: {detail}")
