from typing import Callable, Iterable, Optional, Sequence, TypeVar

from stagewise._types import HasId

_T = TypeVar("_T")


def first_or_none(iterable: Iterable[_T]) -> Optional[_T]:
    """Returns the first value in the iterable or ``None``.

    >>> first_or_none([1, 2, 3])
    1
    >>> first_or_none([])
    """
    return next(iter(iterable), None)


def find(iterable: Iterable[_T], predicate: Callable[[_T], bool]) -> Optional[_T]:
    """Returns the first value in the iterable matching a predicate or ``None``.

    >>> find([1, 2, 3], lambda x: x > 1)
    2
    >>> find([1, 2, 3], lambda x: x > 3)
    """
    return first_or_none(filter(predicate, iterable))


_S = TypeVar("_S", bound=HasId)


def find_by_id(iterable: Iterable[_S], id: Optional[str]) -> Optional[_S]:
    """Returns the first item with a matching ``id`` attribute.

    >>> from collections import namedtuple
    >>> Stage = namedtuple("Stage", ["id"])
    >>> stages = [Stage("planning"), Stage("review")]
    >>> find_by_id(stages, "review")
    Stage(id='review')
    >>> find_by_id(stages, "shipping")
    >>> find_by_id(stages, None)
    """
    if id is None:
        return None
    return find(iterable, lambda item: item.id == id)


def index_by_id(items: Sequence[_S], id: str) -> Optional[int]:
    """Returns the position of the first item with a matching ``id``, or ``None``.

    >>> from collections import namedtuple
    >>> Stage = namedtuple("Stage", ["id"])
    >>> index_by_id([Stage("planning"), Stage("review")], "review")
    1
    >>> index_by_id([Stage("planning")], "review")
    """
    return first_or_none(i for i, item in enumerate(items) if item.id == id)
