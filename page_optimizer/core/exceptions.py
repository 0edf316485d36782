"""Error taxonomy for the optimization pipeline.

Every error here is job-fatal when raised inside a job: the orchestrator
marks the job failed with ``str(exc)`` as its error message. Structural
problems in generated content are not errors; they are carried as
``ValidationResult.issues``.
"""


class PipelineError(Exception):
    """Base exception for pipeline failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FetchError(PipelineError):
    """An external read answered with a non-success HTTP status."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.url = url


class NotFoundError(FetchError):
    """No post or page matched the requested slug."""

    pass


class AuthError(PipelineError):
    """An external system rejected the supplied credentials (401/403)."""

    pass


class ProviderError(PipelineError):
    """A generative provider failed with an HTTP error or an unreadable reply."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.provider = provider


class GenerationTimeoutError(PipelineError, TimeoutError):
    """A generation call exceeded its time budget and was cancelled."""

    def __init__(self, provider: str, timeout_ms: int) -> None:
        super().__init__(
            f"Generation with {provider} timed out after {timeout_ms} ms"
        )
        self.provider = provider
        self.timeout_ms = timeout_ms


class ParseError(PipelineError, ValueError):
    """Generator output could not be recovered as the required JSON object."""

    def __init__(self, message: str, missing_field: str | None = None) -> None:
        super().__init__(message)
        self.missing_field = missing_field


class MissingCredentialsError(PipelineError, ValueError):
    """Required credentials were not supplied; raised before any network call."""

    pass


class PublishError(PipelineError):
    """The content host rejected a publish request."""

    pass
