"""BoundedList — newest-first list with a fixed capacity."""

from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")


class BoundedList(Generic[T]):
    """Ordered, newest first, never longer than `capacity`.

    Prepending beyond capacity evicts from the tail (the oldest item).
    """

    def __init__(self, capacity: int, items: Iterable[T] = ()):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._items: list[T] = list(items)[:capacity]

    def prepend(self, item: T) -> list[T]:
        """Insert at the head. Returns whatever was evicted."""
        self._items.insert(0, item)
        evicted = self._items[self.capacity:]
        del self._items[self.capacity:]
        return evicted

    def index(self, match: Callable[[T], bool]) -> Optional[int]:
        for i, item in enumerate(self._items):
            if match(item):
                return i
        return None

    def find(self, match: Callable[[T], bool]) -> Optional[T]:
        i = self.index(match)
        return None if i is None else self._items[i]

    def replace(self, match: Callable[[T], bool], item: T) -> bool:
        """Replace the first item matching `match` in place."""
        i = self.index(match)
        if i is None:
            return False
        self._items[i] = item
        return True

    def reset(self, items: Iterable[T]) -> None:
        """Replace everything, keeping the first `capacity` items."""
        self._items = list(items)[: self.capacity]

    def clear(self) -> None:
        self._items.clear()

    @property
    def newest(self) -> Optional[T]:
        return self._items[0] if self._items else None

    def to_list(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __getitem__(self, i: int) -> T:
        return self._items[i]

    def __repr__(self) -> str:
        return f"BoundedList(capacity={self.capacity}, items={self._items!r})"
