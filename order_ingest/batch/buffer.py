"""
Bounded accumulator of records awaiting a flush.
"""

from typing import Generic, Iterable, TypeVar

T = TypeVar("T")


class Buffer(Generic[T]):
    """
    Ordered records of one platform pipeline.

    Capacity is a flush trigger, not a hard bound: ``extend`` may take the
    size past capacity, and the owner is expected to flush when ``is_full``.
    """

    def __init__(self, platform: str, capacity: int):
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        self.platform = platform
        self.capacity = capacity
        self._records: list[T] = []

    def append(self, record: T) -> None:
        self._records.append(record)

    def extend(self, records: Iterable[T]) -> None:
        self._records.extend(records)

    def is_full(self) -> bool:
        return len(self._records) >= self.capacity

    def size(self) -> int:
        return len(self._records)

    def drain(self) -> list[T]:
        """Return the buffered records and leave the buffer empty."""
        records, self._records = self._records, []
        return records

    def clear(self) -> None:
        self._records = []

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)
