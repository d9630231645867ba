from typing import Any, Iterable, Optional, Tuple, TypeVar, Union

from typing_extensions import Protocol

_T = TypeVar("_T")

IdOrIds = Union[None, str, Iterable[str]]


class HasId(Protocol):
    @property
    def id(self) -> str:
        ...


def ids_to_tuple(value: IdOrIds) -> Tuple[str, ...]:
    """Coerce a single id, a sequence of ids or nothing into a tuple of ids.

    Empty strings are dropped, since they can never name a stage.

    >>> ids_to_tuple("review")
    ('review',)
    >>> ids_to_tuple(["review", "cancelled"])
    ('review', 'cancelled')
    >>> ids_to_tuple(None)
    ()
    >>> ids_to_tuple("")
    ()
    """
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(v for v in value if v)


def optional_to_tuple(option: Optional[_T]) -> Tuple[_T, ...]:
    """Coerces an optional value into a tuple of one or zero elements.

    >>> optional_to_tuple("a")
    ('a',)
    >>> optional_to_tuple(None)
    ()
    """
    if option is not None:
        return (option,)
    return ()


def to_tuple(value: Any) -> Tuple[Any, ...]:
    """Freeze any iterable into a tuple, treating ``None`` as empty.

    >>> to_tuple([1, 2])
    (1, 2)
    >>> to_tuple(None)
    ()
    """
    if value is None:
        return ()
    return tuple(value)
