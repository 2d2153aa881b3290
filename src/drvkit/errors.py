"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    LOCKFILE = "E_LOCKFILE"
    CONFIG = "E_CONFIG"
    UNKNOWN_PACKAGE = "E_UNKNOWN_PACKAGE"
    BUILD = "E_BUILD"
    COMPLETION = "E_COMPLETION"
    MANUAL_PAGE = "E_MANUAL_PAGE"
    REPRODUCIBILITY = "E_REPRODUCIBILITY"


class DrvError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(DrvError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class LockfileError(DrvError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE, hint=hint, context=context)


class ConfigError(DrvError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class UnknownPackageError(DrvError):
    """A package name is absent from the resolved package index."""

    def __init__(
        self,
        message: str,
        *,
        package: str,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"package": package, **dict(context or {})}
        super().__init__(message, code=ErrorCode.UNKNOWN_PACKAGE, hint=hint, context=merged)
        self.package = package


class BuildFailure(DrvError):
    """A build stage (hook or compile step) exited unsuccessfully.

    ``stage`` is one of ``prepare``, ``pre_build``, ``compile``,
    ``post_build`` or ``install``. ``log`` holds the tail of the stage's
    combined output.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str,
        exit_code: int | None,
        log: str = "",
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {
            "stage": stage,
            "exit_code": "" if exit_code is None else str(exit_code),
            **dict(context or {}),
        }
        super().__init__(message, code=ErrorCode.BUILD, hint=hint, context=merged)
        self.stage = stage
        self.exit_code = exit_code
        self.log = log


class CompletionGenerationFailure(DrvError):
    def __init__(
        self,
        message: str,
        *,
        shell: str | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = {"shell": shell or "", **dict(context or {})}
        super().__init__(message, code=ErrorCode.COMPLETION, hint=hint, context=merged)
        self.shell = shell


class ManualPageNotFound(DrvError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.MANUAL_PAGE, hint=hint, context=context)


class ReproducibilityError(DrvError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REPRODUCIBILITY, hint=hint, context=context)


class AmbiguousManualPageWarning(UserWarning):
    """Manual-page pattern matched files under more than one directory."""


__all__ = [
    "AmbiguousManualPageWarning",
    "BuildFailure",
    "CompletionGenerationFailure",
    "ConfigError",
    "DrvError",
    "ErrorCode",
    "LockfileError",
    "ManualPageNotFound",
    "ReproducibilityError",
    "UnknownPackageError",
    "ValidationError",
]
