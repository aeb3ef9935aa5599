"""Sequential fallback over ordered query strategies.

Some git queries behave differently across checkout configurations
(shallow clones, detached HEAD, refs only cached on the agent). Instead of
nesting error handlers, callers list the strategies in order and take the
first one that succeeds with a non-empty answer.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from .result import Err, Result

__all__ = ["Strategy", "FallbackResult", "first_non_empty"]

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Strategy(Generic[T, E]):
    """A named, zero-argument query returning a list or an error."""

    name: str
    query: Callable[[], Result[list[T], E]]


@dataclass(frozen=True, slots=True)
class FallbackResult(Generic[T]):
    """Outcome of a fallback chain.

    Attributes:
        values: Values from the winning strategy (empty if all were exhausted)
        strategy: Name of the winning strategy, None when exhausted
        failures: Names of strategies that errored, in order
    """

    values: list[T]
    strategy: str | None
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def exhausted(self) -> bool:
        return self.strategy is None


def first_non_empty(
    strategies: Sequence[Strategy[T, E]],
    *,
    on_failure: Callable[[str, E], None] | None = None,
) -> FallbackResult[T]:
    """Run strategies in order; the first non-empty success wins.

    A failing strategy advances to the next one. Exhausting every strategy
    is not an error: the result is empty with ``strategy=None``.
    """
    failures: list[str] = []
    for strategy in strategies:
        result = strategy.query()
        if isinstance(result, Err):
            failures.append(strategy.name)
            if on_failure is not None:
                on_failure(strategy.name, result.error)
            continue
        if result.value:
            return FallbackResult(
                values=list(result.value),
                strategy=strategy.name,
                failures=tuple(failures),
            )
    return FallbackResult(values=[], strategy=None, failures=tuple(failures))
