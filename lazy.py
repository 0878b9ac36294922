"""
Lazy pipeline built on native generators, plus a fluent builder.

Every stage is a generator that wraps a single upstream iterator. Values are
produced one at a time, only when the consumer asks for the next one.
"""

import logging
from typing import Any, Callable, Iterable, Iterator, List

import pull
from pull import CountLimit

logger = logging.getLogger(__name__)


class PipelineError(ValueError):
    """Raised when a LazyPipeline is used before it has a source."""


# --------- sources ----------

def sequence(start: int, stop: int) -> Iterator[int]:
    current = start
    while current < stop:
        logger.debug(f"range\t{current}")
        yield current
        current += 1


def from_iterable(iterable: Iterable[Any]) -> Iterator[Any]:
    for data in iterable:
        logger.debug(f"range\t{data}")
        yield data


# --------- stages ----------

def transform(flow: Iterable[Any], solve: Callable[[Any], Any]) -> Iterator[Any]:
    for data in flow:
        logger.debug(f"map\t{data}")
        yield solve(data)


def select(flow: Iterable[Any], condition: Callable[[Any], bool]) -> Iterator[Any]:
    # Keeps pulling while values are rejected; never yields on an infinite
    # upstream that matches nothing.
    for data in flow:
        if condition(data):
            logger.debug(f"filter\t{data}")
            yield data


def limit_until(flow: Iterable[Any], condition: Callable[[Any], bool]) -> Iterator[Any]:
    """Yield values up to and including the first one that satisfies ``condition``."""
    for data in flow:
        stop = condition(data)
        yield data
        if stop:
            return


def take(flow: Iterable[Any], number: int) -> Iterator[Any]:
    """At most ``number`` values; a ``number`` below 1 still lets one through."""
    return limit_until(flow, CountLimit(number))


def join(flow: Iterable[Any]) -> List[Any]:
    return list(flow)


_BACKENDS = {
    "generator": {
        "sequence": sequence,
        "from_iterable": from_iterable,
        "transform": transform,
        "select": select,
        "limit_until": limit_until,
        "take": take,
        "join": join,
        "iterate": iter,
    },
    "pull": {
        "sequence": pull.sequence,
        "from_iterable": pull.from_iterable,
        "transform": pull.transform,
        "select": pull.select,
        "limit_until": pull.limit_until,
        "take": pull.take,
        "join": pull.join,
        "iterate": pull.iterate,
    },
}


class LazyPipeline:
    """
    Fluent builder over either stage implementation.

    Each chained call wraps the current flow in a new stage and keeps only the
    result. Nothing runs until the pipeline is iterated or materialized, and a
    pipeline can be consumed once.
    """

    def __init__(self, backend: str = "generator"):
        backend = getattr(backend, "value", backend)
        if backend not in _BACKENDS:
            raise PipelineError(
                f"Unknown backend: {backend!r}. Valid backends: {sorted(_BACKENDS)}"
            )
        self.backend = backend
        self._stages = _BACKENDS[backend]
        self._flow = None

    # --------- sources ----------
    def source(self, start: int, stop: int) -> "LazyPipeline":
        self._flow = self._stages["sequence"](start, stop)
        return self

    def range(self, start: int, stop: int) -> "LazyPipeline":
        """Alias for source()"""
        return self.source(start, stop)

    def from_iterable(self, iterable: Iterable[Any]) -> "LazyPipeline":
        self._flow = self._stages["from_iterable"](iterable)
        return self

    # --------- chainable stages ----------
    def transform(self, solve: Callable[[Any], Any]) -> "LazyPipeline":
        return self._wrap("transform", solve)

    def map(self, solve: Callable[[Any], Any]) -> "LazyPipeline":
        """Alias for transform()"""
        return self.transform(solve)

    def select(self, condition: Callable[[Any], bool]) -> "LazyPipeline":
        return self._wrap("select", condition)

    def filter(self, condition: Callable[[Any], bool]) -> "LazyPipeline":
        """Alias for select()"""
        return self.select(condition)

    def limit_until(self, condition: Callable[[Any], bool]) -> "LazyPipeline":
        return self._wrap("limit_until", condition)

    def take(self, number: int) -> "LazyPipeline":
        return self._wrap("take", number)

    # --------- consumption ----------
    def to_list(self) -> List[Any]:
        return self._stages["join"](self._require_flow())

    def __iter__(self) -> Iterator[Any]:
        return self._stages["iterate"](self._require_flow())

    # --------- helpers ----------
    def _wrap(self, stage: str, arg: Any) -> "LazyPipeline":
        self._flow = self._stages[stage](self._require_flow(), arg)
        return self

    def _require_flow(self):
        if self._flow is None:
            raise PipelineError("Pipeline has no source; call source() or from_iterable() first")
        return self._flow

    def __repr__(self):
        state = "unsourced" if self._flow is None else "sourced"
        return f"LazyPipeline(backend={self.backend!r}, {state})"


def lazy(backend: str = "generator") -> LazyPipeline:
    return LazyPipeline(backend)
