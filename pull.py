"""
Pull-based lazy pipeline built on plain callables.

A producer is any zero-argument callable that returns either the next value
of its sequence or the ``EXHAUSTED`` sentinel. Once a producer has returned
``EXHAUSTED`` it keeps returning it. Stages wrap exactly one upstream producer
and only pull from it when asked for a value themselves.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List

logger = logging.getLogger(__name__)


class _Exhausted:
    """Marker type for the end of a producer's sequence."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "EXHAUSTED"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Exhausted, ())


EXHAUSTED = _Exhausted()


def is_exhausted(value: Any) -> bool:
    """True only for the sentinel itself, never for data that equals it."""
    return value is EXHAUSTED


class Producer(ABC):
    """Base class for the stateful, single-use producers shipped here."""

    @abstractmethod
    def __call__(self) -> Any:
        ...


class RangeProducer(Producer):
    """Integers from ``start`` (inclusive) to ``stop`` (exclusive)."""

    def __init__(self, start: int, stop: int):
        self._current = start
        self._stop = stop

    def __call__(self):
        if self._current < self._stop:
            value = self._current
            self._current += 1
            logger.debug(f"range\t{value}")
            return value
        return EXHAUSTED


class IterableProducer(Producer):
    """Adapts an ordinary iterable, finite or not, to the pull protocol."""

    def __init__(self, iterable: Iterable[Any]):
        self._iterator = iter(iterable)
        self._done = False

    def __call__(self):
        if self._done:
            return EXHAUSTED
        try:
            value = next(self._iterator)
        except StopIteration:
            self._done = True
            return EXHAUSTED
        logger.debug(f"range\t{value}")
        return value


class TransformProducer(Producer):
    def __init__(self, flow: Callable[[], Any], solve: Callable[[Any], Any]):
        self._flow = flow
        self._solve = solve

    def __call__(self):
        data = self._flow()
        if is_exhausted(data):
            return data
        logger.debug(f"map\t{data}")
        return self._solve(data)


class SelectProducer(Producer):
    """
    Returns the next upstream value accepted by ``condition``.

    A single call keeps pulling until it finds one or upstream runs out, so an
    infinite upstream whose values are all rejected never returns.
    """

    def __init__(self, flow: Callable[[], Any], condition: Callable[[Any], bool]):
        self._flow = flow
        self._condition = condition

    def __call__(self):
        while True:
            data = self._flow()
            if is_exhausted(data):
                return data
            if self._condition(data):
                logger.debug(f"filter\t{data}")
                return data


class LimitUntilProducer(Producer):
    """
    Passes values through until ``condition`` holds for one of them.

    The value that satisfies ``condition`` is still returned; the producer is
    exhausted from the following call on and stops pulling from upstream.
    """

    def __init__(self, flow: Callable[[], Any], condition: Callable[[Any], bool]):
        self._flow = flow
        self._condition = condition
        self._stopped = False

    def __call__(self):
        if self._stopped:
            return EXHAUSTED
        data = self._flow()
        if is_exhausted(data):
            return data
        self._stopped = bool(self._condition(data))
        return data


class CountLimit:
    """Stop condition that holds from the ``number``-th call onwards."""

    def __init__(self, number: int):
        self.number = int(number)
        self.seen = 0

    def __call__(self, _data: Any) -> bool:
        self.seen += 1
        return self.seen >= self.number

    def __repr__(self):
        return f"CountLimit(number={self.number}, seen={self.seen})"


# --------- factories ----------

def sequence(start: int, stop: int) -> Producer:
    return RangeProducer(start, stop)


def from_iterable(iterable: Iterable[Any]) -> Producer:
    return IterableProducer(iterable)


def transform(flow: Callable[[], Any], solve: Callable[[Any], Any]) -> Producer:
    return TransformProducer(flow, solve)


def select(flow: Callable[[], Any], condition: Callable[[Any], bool]) -> Producer:
    return SelectProducer(flow, condition)


def limit_until(flow: Callable[[], Any], condition: Callable[[Any], bool]) -> Producer:
    return LimitUntilProducer(flow, condition)


def take(flow: Callable[[], Any], number: int) -> Producer:
    """At most ``number`` values; a ``number`` below 1 still lets one through."""
    return LimitUntilProducer(flow, CountLimit(number))


# --------- consumers ----------

def join(flow: Callable[[], Any]) -> List[Any]:
    """Drain ``flow`` into a list. Never returns for an unbounded producer."""
    items = []
    while True:
        data = flow()
        if is_exhausted(data):
            break
        items.append(data)
    return items


def iterate(flow: Callable[[], Any]) -> Iterator[Any]:
    """Expose a producer to ``for`` loops, one pull per item."""
    while True:
        data = flow()
        if is_exhausted(data):
            return
        yield data
