from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .enums import ParseErrorKind

T = TypeVar("T")


class ParseError(ValueError):
    def __init__(self, kind: ParseErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ParseError({self.kind.value!r}, {self.message!r})"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Outcome of a parse: either a value or the error that stopped it."""

    value: T | None = None
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        # Empty on success so a form can disable submission while it is set.
        return self.error.message if self.error else ""

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
