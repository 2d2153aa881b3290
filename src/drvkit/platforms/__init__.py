"""Platform matrix: evaluate one build description per target platform.

``each_platform(f)`` returns a lazy mapping from platform identifier to
``f(platform)``. Each key is evaluated on first access and memoized,
failures included, so a broken platform never blocks the others and is
never silently retried.
"""

from __future__ import annotations

import platform as _host
import re
import sys
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from drvkit.errors import DrvError, ValidationError
from drvkit.models import DEFAULT_PLATFORMS, PlatformIdentifier

T = TypeVar("T")

PLATFORM_PATTERN = re.compile(r"^[a-z0-9_]+-[a-z0-9_]+$")

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
}

_OS_ALIASES = {
    "linux": "linux",
    "darwin": "darwin",
}


@dataclass(slots=True)
class MatrixReport(Generic[T]):
    results: dict[PlatformIdentifier, T] = field(default_factory=dict)
    failures: dict[PlatformIdentifier, DrvError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class PlatformMatrix(Mapping[PlatformIdentifier, T], Generic[T]):
    """Lazy, memoized ``platform -> f(platform)`` mapping."""

    def __init__(
        self,
        f: Callable[[PlatformIdentifier], T],
        platforms: Iterable[PlatformIdentifier] = DEFAULT_PLATFORMS,
    ) -> None:
        self._f = f
        self._platforms = validate_platforms(platforms)
        self._results: dict[PlatformIdentifier, T] = {}
        self._failures: dict[PlatformIdentifier, BaseException] = {}
        self._locks = {name: threading.Lock() for name in self._platforms}

    @property
    def platforms(self) -> tuple[PlatformIdentifier, ...]:
        return self._platforms

    def __getitem__(self, platform: PlatformIdentifier) -> T:
        if platform not in self._locks:
            raise KeyError(platform)
        with self._locks[platform]:
            if platform in self._failures:
                raise self._failures[platform]
            if platform not in self._results:
                try:
                    self._results[platform] = self._f(platform)
                except Exception as exc:
                    self._failures[platform] = exc
                    raise
            return self._results[platform]

    def __iter__(self) -> Iterator[PlatformIdentifier]:
        return iter(self._platforms)

    def __len__(self) -> int:
        return len(self._platforms)

    def __contains__(self, platform: object) -> bool:
        return platform in self._locks

    def evaluated(self) -> tuple[PlatformIdentifier, ...]:
        """Platforms whose value (or failure) has already been computed."""
        return tuple(p for p in self._platforms if p in self._results or p in self._failures)

    def realize_all(
        self,
        *,
        select: Callable[[T], object] | None = None,
        max_workers: int | None = None,
    ) -> MatrixReport[T]:
        """Evaluate every platform and collect per-platform results and failures.

        ``select`` is applied to each value inside the evaluation (for example
        ``lambda outputs: outputs.default_output``) so that lazily computed
        members are realized on the worker as well. Only ``DrvError`` is
        collected as a failure; any other exception propagates.
        """
        report: MatrixReport[T] = MatrixReport()

        def _evaluate(platform: PlatformIdentifier) -> T:
            value = self[platform]
            if select is not None:
                select(value)
            return value

        if max_workers is None or max_workers <= 1:
            outcomes = [(p, _capture(_evaluate, p)) for p in self._platforms]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                futures = [(p, pool.submit(_capture, _evaluate, p)) for p in self._platforms]
                outcomes = [(p, future.result()) for p, future in futures]

        for platform, (value, error) in outcomes:
            if error is not None:
                report.failures[platform] = error
            else:
                report.results[platform] = value
        return report

    def __repr__(self) -> str:
        return f"PlatformMatrix(platforms={self._platforms!r})"


def each_platform(
    f: Callable[[PlatformIdentifier], T],
    platforms: Iterable[PlatformIdentifier] = DEFAULT_PLATFORMS,
) -> PlatformMatrix[T]:
    return PlatformMatrix(f, platforms)


def validate_platforms(platforms: Iterable[PlatformIdentifier]) -> tuple[PlatformIdentifier, ...]:
    selected = tuple(platforms)
    if not selected:
        raise ValidationError(
            "At least one target platform is required.",
            hint="Pass platform identifiers such as 'x86_64-linux'.",
        )
    seen: set[str] = set()
    for name in selected:
        if not isinstance(name, str) or not PLATFORM_PATTERN.fullmatch(name):
            raise ValidationError(
                f"Invalid platform identifier: {name!r}.",
                hint="Use the '<arch>-<os>' form, e.g. 'aarch64-darwin'.",
            )
        if name in seen:
            raise ValidationError(
                f"Duplicate platform identifier: {name}.",
                context={"platform": name},
            )
        seen.add(name)
    return selected


def current_platform() -> PlatformIdentifier:
    machine = _host.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine)
    os_name = next(
        (value for prefix, value in _OS_ALIASES.items() if sys.platform.startswith(prefix)),
        sys.platform,
    )
    return f"{arch}-{os_name}"


def _capture(
    fn: Callable[[PlatformIdentifier], T],
    platform: PlatformIdentifier,
) -> tuple[T | None, DrvError | None]:
    try:
        return fn(platform), None
    except DrvError as exc:
        return None, exc


__all__ = [
    "MatrixReport",
    "PlatformMatrix",
    "current_platform",
    "each_platform",
    "validate_platforms",
]
