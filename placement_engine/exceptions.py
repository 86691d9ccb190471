"""Exceptions raised by the scoring and recommendation engine.

Callers only ever see ``ValidationError`` and ``ConfigurationError``.
``UpstreamUnavailable`` is raised by the oracle and provider clients and is
always converted into fallback values before it reaches a caller.
"""


class EngineError(Exception):
    """Base exception for all engine errors."""

    pass


class ConfigurationError(EngineError):
    """Raised when required configuration is absent or invalid.

    Examples:
    - Missing oracle API key for an operation that needs it
    - Weight vector that does not sum to 1
    - Config file that cannot be read
    """

    pass


class ValidationError(EngineError):
    """Raised when a caller-supplied argument is missing or invalid."""

    pass


class CandidateNotFound(ValidationError):
    """Raised when a candidate id does not resolve to a profile."""

    pass


class UpstreamUnavailable(EngineError):
    """Raised when the oracle or job provider times out, errors or returns junk."""

    pass
