"""Exception hierarchy for keyword-spotting scoring."""


class KwsError(Exception):
    """Base class for all scoring errors."""


class TermValidationError(KwsError, ValueError):
    """A term record is malformed (empty keyword id, bad times, ...)."""


class ConfigError(KwsError, ValueError):
    """Configuration values are missing, mistyped or out of range."""


class TwvConfigurationError(ConfigError):
    """TWV options are missing or out of range."""
