"""Exception hierarchy for llamb.

Only conditions without a local recovery path are raised to callers.
Cancellation, malformed stream chunks and late transport failures are
handled inside the streaming engine and never show up here.
"""

SWITCH_PROVIDER_HINT = "llamb ask --base-url <url> --model <model> \"...\""


class LlambError(Exception):
    """Base class for all llamb errors."""


class ProviderConfigurationError(LlambError):
    """Provider settings are unusable; raised before any request is sent."""


class ProviderUnreachableError(LlambError):
    """The provider could not be reached before any output arrived.

    Attributes:
        provider_name: Name of the provider that failed
        hint: Command the user can run to try another provider
    """

    def __init__(self, provider_name: str, hint: str = SWITCH_PROVIDER_HINT):
        self.provider_name = provider_name
        self.hint = hint
        super().__init__(f"Provider {provider_name} appears to be offline or unreachable")


class ProviderRequestError(LlambError):
    """The provider answered with an HTTP error status."""

    def __init__(self, provider_name: str, status_code: int, message: str):
        self.provider_name = provider_name
        self.status_code = status_code
        super().__init__(f"Error with provider {provider_name} ({status_code}): {message}")


class SessionStoreError(LlambError):
    """A session could not be persisted."""


class FileOutputError(LlambError):
    """A response could not be written to disk."""
