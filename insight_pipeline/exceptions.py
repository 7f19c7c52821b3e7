"""Exception hierarchy for the insight pipeline."""


class InsightPipelineError(Exception):
    """Base exception for the insight pipeline."""

    pass


class ConfigurationError(InsightPipelineError):
    """Raised when required configuration is missing or invalid."""

    pass


class ProviderError(InsightPipelineError):
    """Raised when a call to the language-model provider fails."""

    pass


class ProviderResponseError(ProviderError):
    """Raised when a provider reply cannot be parsed into the expected structure."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class InvalidTransitionError(InsightPipelineError):
    """Raised when a feedback item is moved to a status it cannot reach."""

    pass