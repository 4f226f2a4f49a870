"""Custom exception hierarchy for graphtool."""

from collections.abc import Mapping


class GraphToolError(Exception):
    """Base exception for graphtool."""
    pass


class ConfigurationError(GraphToolError):
    """Raised when CLI flags or environment variables are invalid."""
    pass


# ── Authentication ──────────────────────────────────────────────────────────────


class AuthError(GraphToolError):
    """Raised when a signing credential cannot be built. Never retried."""
    pass


class NoMethodProvidedError(AuthError):
    """Raised when zero or several authentication methods are configured."""
    pass


class FileUnreadableError(AuthError):
    """Raised when the certificate file cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"failed to read PFX file {path}: {reason}")


class CertificateDecodeError(AuthError):
    """Raised when a PKCS#12 container cannot be decoded.

    The message carries the decoder's diagnostic but never the password.
    """
    pass


class StoreExportError(AuthError):
    """Raised when the platform certificate store cannot export a certificate."""
    pass


class CertStoreError(GraphToolError):
    """Raised by certificate-store exporters."""

    def __init__(self, thumbprint: str, message: str):
        self.thumbprint = thumbprint
        super().__init__(message)


class CertificateNotFoundError(CertStoreError):
    """No certificate with the given thumbprint exists in the store."""
    pass


class CertificateNotExportableError(CertStoreError):
    """The certificate exists but its private key cannot be exported."""
    pass


# ── Graph transport ─────────────────────────────────────────────────────────────


class GraphAPIError(GraphToolError):
    """Non-2xx response from Microsoft Graph with its OData error details."""

    def __init__(
        self,
        message: str,
        status_code: int,
        code: str = "",
        headers: Mapping[str, str] | None = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.headers = dict(headers or {})
        label = f"{code}: " if code else ""
        super().__init__(f"Graph API error {status_code}: {label}{message}")

    @property
    def retry_after(self) -> str | None:
        """Server-supplied Retry-After header value (seconds), if any."""
        for key, value in self.headers.items():
            if key.lower() == "retry-after" and value:
                return value
        return None


class GraphTransportError(GraphToolError):
    """Network-level failure before Graph produced a response."""
    pass


# ── Retry / cancellation ────────────────────────────────────────────────────────


class RetryExhaustedError(GraphToolError):
    """Raised when a transient failure persists after every allowed retry."""

    def __init__(self, retries: int, last_error: BaseException):
        self.retries = retries
        self.last_error = last_error
        super().__init__(f"operation failed after {retries} retries: {last_error}")


class OperationCancelledError(GraphToolError):
    """Raised when the caller cancels an operation, e.g. during a backoff wait."""
    pass


class DeadlineExceededError(OperationCancelledError):
    """Raised when the overall deadline expires before the operation completes."""
    pass


# ── Enriched Graph errors ───────────────────────────────────────────────────────


class RateLimitExceededError(GraphToolError):
    """Graph throttled the request. Carries the Retry-After hint when present."""

    def __init__(self, operation: str, code: str, retry_after: str | None = None):
        self.operation = operation
        self.code = code
        self.retry_after = retry_after
        message = f"rate limit exceeded during {operation}"
        if retry_after:
            message += f" (retry after {retry_after} seconds)"
        message += (
            ". Consider: 1) Reducing request frequency, "
            "2) Implementing exponential backoff, "
            "3) Reviewing API throttling limits"
        )
        super().__init__(message)


class ServiceTemporarilyUnavailableError(GraphToolError):
    """Graph reported ServiceUnavailable or GatewayTimeout."""

    def __init__(self, operation: str, code: str):
        self.operation = operation
        self.code = code
        super().__init__(
            f"service temporarily unavailable during {operation} (code: {code})"
        )
