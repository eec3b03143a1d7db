# errors.py
# Error taxonomy shared by every lifecycle operation.

S3_PERMISSION_CHECK_CODE = "ValidationException"
S3_PERMISSION_CHECK_MESSAGE = "Check your S3 bucket permissions and try again"


class PcaError(Exception):
    """Base class for private CA lifecycle errors.

    operation: remote operation (or local check) that failed
    resource_id: authority / certificate ARN when one is known
    step: self-signing step label, set by RootSelfSigner
    certificate_arn: issued certificate involved in a failed self-signing step
    """

    def __init__(self, message: str, operation: str = None, resource_id: str = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource_id = resource_id
        self.step = None
        self.certificate_arn = None

    def __str__(self):
        parts = []
        if self.step:
            parts.append(f"step '{self.step}'")
        if self.operation:
            parts.append(self.operation)
        if self.resource_id:
            parts.append(self.resource_id)
        if not parts:
            return self.message
        return f"{' / '.join(parts)}: {self.message}"


class ValidationError(PcaError):
    """Local precondition failed; raised before any remote call."""


class NotFoundError(PcaError):
    """The remote authority or certificate does not exist."""


class TransientProviderError(PcaError):
    """Known-recoverable provider condition, retried inside a fixed budget."""


class WrongStateError(PcaError):
    """The authority is in a state that cannot satisfy the request."""


InvalidStateError = WrongStateError


class ProviderError(PcaError):
    """Any other remote failure."""


class UnexpectedStateError(ProviderError):
    """A wait ended in a status outside the expected target set."""

    def __init__(self, message: str, status: str = "", operation: str = None, resource_id: str = None):
        super().__init__(message, operation=operation, resource_id=resource_id)
        self.status = status


class WaitTimeoutError(PcaError, TimeoutError):
    """A bounded wait exceeded its budget. The remote operation keeps running."""

    def __init__(self, message: str, elapsed: float = 0.0, operation: str = None, resource_id: str = None):
        super().__init__(message, operation=operation, resource_id=resource_id)
        self.elapsed = elapsed


def is_s3_permission_propagation_delay(code: str, message: str) -> bool:
    """Match the CRL bucket ACL propagation failure seen right after bucket setup.

    The provider only exposes this as free text inside a ValidationException,
    so this is a substring match. Keep it the single place that knows the text.
    """
    return code == S3_PERMISSION_CHECK_CODE and S3_PERMISSION_CHECK_MESSAGE in (message or "")
