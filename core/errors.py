"""Exception hierarchy shared by the desktop shell and the backend."""


class PromptMetalError(Exception):
    """Base class for application errors."""


class StartupTimeout(PromptMetalError):
    """The backend never opened its port within the startup bound."""

    def __init__(self, port, timeout):
        self.port = port
        self.timeout = timeout
        super().__init__(
            f"Backend did not open port {port} within {int(round(timeout * 1000))}ms"
        )


class ProviderError(PromptMetalError):
    """A call to Google (OAuth or Drive) failed."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthFailure(ProviderError):
    """Authorization-code exchange or token refresh was rejected."""


class ProviderOperationFailure(ProviderError):
    """A Drive or userinfo request failed mid-sequence."""
