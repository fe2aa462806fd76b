"""Validation error taxonomy.

Every rule in the engine raises one of these on the first violation.
Messages are human-readable and name the offending field(s); no structured
error codes are defined.
"""

from __future__ import annotations


class SpecValidationError(Exception):
    """Raised when a cluster specification fails validation."""

    pass


class MalformedValueError(SpecValidationError):
    """Raised when a value fails a pattern or parse (IP, CIDR, UUID, duration, version)."""

    pass


class IncompatibleCombinationError(SpecValidationError):
    """Raised when individually valid fields are jointly unsupported."""

    pass


class MissingFieldError(SpecValidationError):
    """Raised when a field required in the current context is absent."""

    pass


class UnsupportedVersionError(SpecValidationError):
    """Raised when an orchestrator type, release or version is not supported."""

    pass
