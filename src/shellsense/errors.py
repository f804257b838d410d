"""
Exceptions raised inside ShellSense.

Nothing here escapes a public completion or history call: factories catch
ConfigurationError and fall back, and the fuzzy factory catches
FzfUnavailableError.
"""


class ShellSenseError(Exception):
    """Base class for ShellSense errors."""


class ConfigurationError(ShellSenseError):
    """A backend, history mode or ranking strategy name is not recognised."""

    def __init__(self, kind: str, name: str, choices=()):
        self.kind = kind
        self.name = name
        self.choices = tuple(choices)
        message = f"Unknown {kind}: {name!r}"
        if self.choices:
            message += f" (expected one of: {', '.join(self.choices)})"
        super().__init__(message)


class FzfUnavailableError(ShellSenseError):
    """The external ranking helper is missing, failed or timed out."""
