"""nextroute exception hierarchy.

Every error carries the source position it was found at. The pipeline
collects them as values and the driver decides whether to abort.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True)
class SourcePosition:
    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


class NextrouteError(Exception):
    """Base for all nextroute errors."""

    def __init__(self, message: str, position: SourcePosition | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is not None:
            return f"{self.position}: {self.message}"
        return self.message


class ScanError(NextrouteError):
    """A route module could not be read or parsed."""


class DirectiveParseError(NextrouteError):
    """Malformed directive: unrecognised call, bad bind argument or non-constant value."""


class MergeError(NextrouteError):
    """A file's directives cannot be attached to its handlers."""


class DuplicateFileDirectiveError(MergeError):
    pass


class DanglingDirectiveError(MergeError):
    pass


@dataclass(frozen=True)
class RouteCollision:
    pattern: str
    method: str
    first: SourcePosition
    second: SourcePosition

    def __str__(self) -> str:
        return f"{self.method} {self.pattern}: {self.first} and {self.second}"


class RouteCollisionError(NextrouteError):
    """Two or more handlers resolve to the same pattern and method."""

    def __init__(
        self,
        collisions: Sequence[RouteCollision],
        errors: Iterable[NextrouteError] = (),
    ) -> None:
        self.collisions = tuple(collisions)
        # parse and merge errors found earlier in the same run
        self.errors = tuple(errors)
        lines = "\n".join(f"  {c}" for c in self.collisions)
        super().__init__(f"ambiguous routes ({len(self.collisions)}):\n{lines}")


class BuildFailed(NextrouteError):
    """Aggregate of every error a build run collected."""

    def __init__(self, errors: Iterable[NextrouteError]) -> None:
        self.errors = tuple(errors)
        lines = "\n".join(f"  {e}" for e in self.errors)
        super().__init__(f"route build failed with {len(self.errors)} error(s):\n{lines}")
