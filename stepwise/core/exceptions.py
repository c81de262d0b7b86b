"""
Exception hierarchy for assembly, translation, request and listener faults.

Startup faults (configuration, themes) are raised synchronously while the
app is assembled. Listener faults are delivered on the futures returned by
``start`` and ``stop`` with fixed messages. Request faults carry the HTTP
status the error pages are rendered with.
"""


class StepwiseError(Exception):
    """Base exception for stepwise errors."""

    status_code = 500

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ConfigurationError(StepwiseError):
    """Raised when the configuration cannot be assembled into an app."""

    pass


class UnknownThemeError(ConfigurationError):
    """Raised when a theme name is not registered."""

    pass


class TranslationsTimeoutError(StepwiseError):
    """Raised when translations are not ready within the allowed time."""

    status_code = 503


class TranslationsLoadError(StepwiseError):
    """Raised when translation resources could not be loaded."""

    status_code = 503


class CookiesRequiredError(StepwiseError):
    """Raised when a client does not send cookies back."""

    status_code = 403


class ServerError(StepwiseError):
    """Base exception for listener lifecycle errors."""

    pass


class ServerStartError(ServerError):
    """Raised when the listener cannot be opened."""

    pass


class ServerStopError(ServerError):
    """Raised when the listener cannot be closed."""

    pass


class ServerStateError(ServerError):
    """Raised when a lifecycle call is invalid in the current state."""

    pass


class NotStartedError(ServerStateError):
    """Raised when stopping a server that was never started."""

    pass
