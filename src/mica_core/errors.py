"""Error taxonomy shared by the alignment engine."""

from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "MicaError",
    "NullInput",
    "InvalidArgument",
    "OutOfRange",
    "IllegalState",
    "DuplicateName",
]


class MicaError(ValueError):
    """Base class for usage errors raised by the engine.

    ``context`` carries the offending values so that callers (the CLI in
    particular) can render structured error payloads.
    """

    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context or {})


class NullInput(MicaError):
    """A required reference is missing."""


class InvalidArgument(MicaError):
    """An argument is malformed (empty name, mismatched lengths, ...)."""


class OutOfRange(MicaError):
    """A numeric parameter lies outside its documented bounds."""

    def __init__(
        self,
        name: str,
        value: Any,
        lower: Any,
        upper: Any,
    ) -> None:
        super().__init__(
            f"{name}={value!r} is outside of [{lower}, {upper}]",
            context={"parameter": name, "value": value, "lower": lower, "upper": upper},
        )
        self.value = value
        self.lower = lower
        self.upper = upper


class IllegalState(MicaError):
    """The requested operation does not fit the current object state."""


class DuplicateName(MicaError):
    """Two curves of one collection share the same name."""
