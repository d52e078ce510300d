"""
Error taxonomy for Stratum.

Every exception raised by the library derives from StratumError. Rejected
configuration writes are not errors: set/delete return None and save returns
False, so callers can recover locally.

Dispatch errors carry the object type and operation that failed so that
top-level tooling can build actionable messages.
"""

from __future__ import annotations

import pathlib as _pathlib
import typing as _typing


class StratumError(Exception):
    """Base class for all Stratum errors."""


# =============================================================================
# Configuration errors
# =============================================================================


class ConfigError(StratumError):
    """Misuse of the layered configuration engine."""


class KeyPathError(ConfigError, ValueError):
    """Empty or malformed key path."""


class ConfigFileError(ConfigError):
    """Error loading or saving a configuration file."""

    def __init__(self, path: _pathlib.Path | str, message: str) -> None:
        self.path = _pathlib.Path(path)
        super().__init__(f"Error in config file {path}: {message}")


class LayerError(ConfigError):
    """Invalid layer operation (duplicate name, unknown selector, predefined removal)."""


# =============================================================================
# Declaration errors
# =============================================================================


class DeclarationError(StratumError):
    """Invalid object type declaration."""


# =============================================================================
# Dispatch errors
# =============================================================================


class DispatchError(StratumError):
    """Base class for failures while dispatching an object operation."""

    def __init__(
        self,
        message: str,
        *,
        type_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.type_name = type_name
        self.operation = operation
        self.message = message
        super().__init__(self._format())

    def _format(self) -> str:
        if self.type_name and self.operation:
            return f"{self.operation} {self.type_name}: {self.message}"
        if self.type_name:
            return f"{self.type_name}: {self.message}"
        return self.message


class UnknownObjectTypeError(DispatchError, KeyError):
    """The requested object type was never declared."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self._format()


class MissingRequiredDependencyError(DispatchError):
    """A required data value or object could not be resolved before dispatch."""

    def __init__(
        self,
        dependency: str,
        kind: str,
        *,
        type_name: str | None = None,
        operation: str | None = None,
        message: str | None = None,
    ) -> None:
        self.dependency = dependency
        self.kind = kind
        super().__init__(
            message or f"required {kind} '{dependency}' is not set",
            type_name=type_name,
            operation=operation,
        )


class UnboundOperationError(DispatchError):
    """No handler and no controller primitive exist for the operation."""


class DependencyCycleError(DispatchError):
    """An object type was requested while it was still being resolved."""

    def __init__(self, chain: _typing.Sequence[str], **kwargs: _typing.Any) -> None:
        self.chain = tuple(chain)
        super().__init__(f"dependency loop: {' -> '.join(self.chain)}", **kwargs)


class BackendFailureError(DispatchError):
    """A controller primitive or process handler raised.

    The original exception is available as ``__cause__``.
    """


class TransientBackendError(BackendFailureError):
    """A backend failure that may succeed if retried."""


class RetryExhaustedError(BackendFailureError):
    """A bounded retry gave up after the last attempt."""

    def __init__(self, message: str, *, attempts: int, **kwargs: _typing.Any) -> None:
        self.attempts = attempts
        super().__init__(message, **kwargs)


class AttributeMappingError(DispatchError):
    """An attribute is undeclared or its backend path does not match the payload."""

    def __init__(self, attribute: str, message: str, **kwargs: _typing.Any) -> None:
        self.attribute = attribute
        super().__init__(message, **kwargs)
