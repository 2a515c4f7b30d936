"""
Time-ordered buffer holding the samples of one measurement stream.
"""

from bisect import bisect_left, bisect_right
from typing import Any, Iterator, List, Optional

from liofuse.types import Measurement


class MeasurementBuffer:
    """
    An ordered mapping from timestamp to value. Keys are unique, so adding a
    value at an existing timestamp overwrites the old one. Entries are always
    kept sorted by timestamp, regardless of insertion order.

    The buffer never evicts on its own. Memory is bounded by the owner calling
    ``discard_up_to`` once the measurements have been consumed.
    """

    __slots__ = ["capacity", "_stamps", "_values"]

    def __init__(self, capacity: int = None):
        """
        Parameters
        ----------
        capacity : int, optional
            Expected number of entries. This is only a hint, no eviction is
            performed when it is exceeded.
        """
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive.")

        #:int: advisory capacity
        self.capacity = capacity
        self._stamps: List[float] = []
        self._values: List[Any] = []

    def add(self, stamp: float, value: Any):
        """
        Inserts ``value`` at ``stamp``, overwriting any entry with the same
        timestamp.
        """
        stamp = float(stamp)

        # Common case: in-order arrival
        if not self._stamps or stamp > self._stamps[-1]:
            self._stamps.append(stamp)
            self._values.append(value)
            return

        idx = bisect_left(self._stamps, stamp)
        if idx < len(self._stamps) and self._stamps[idx] == stamp:
            self._values[idx] = value
        else:
            self._stamps.insert(idx, stamp)
            self._values.insert(idx, value)

    def empty(self) -> bool:
        return len(self._stamps) == 0

    def __len__(self) -> int:
        return len(self._stamps)

    def __iter__(self) -> Iterator[Measurement]:
        for stamp, value in zip(self._stamps, self._values):
            yield Measurement(stamp, value)

    @property
    def stamps(self) -> List[float]:
        """Copy of the stored timestamps, in ascending order."""
        return list(self._stamps)

    def last(self) -> Measurement:
        """
        The entry with the largest timestamp.

        Raises
        ------
        IndexError
            If the buffer is empty.
        """
        if not self._stamps:
            raise IndexError("last() called on an empty MeasurementBuffer.")
        return Measurement(self._stamps[-1], self._values[-1])

    def last_stamp(self) -> float:
        return self.last().stamp

    def last_value(self) -> Any:
        return self.last().value

    def first_after(self, stamp: float) -> Optional[Measurement]:
        """
        Returns the entry with the smallest timestamp strictly greater than
        ``stamp``, or ``None`` if there is no such entry.
        """
        idx = bisect_right(self._stamps, stamp)
        if idx == len(self._stamps):
            return None
        return Measurement(self._stamps[idx], self._values[idx])

    def discard_up_to(self, stamp: float) -> int:
        """
        Removes every entry with a timestamp at or before ``stamp``.

        Returns
        -------
        int
            Number of entries removed.
        """
        idx = bisect_right(self._stamps, stamp)
        if idx > 0:
            del self._stamps[:idx]
            del self._values[:idx]
        return idx

    def clear(self):
        self._stamps = []
        self._values = []

    def __repr__(self):
        if self.empty():
            return f"MeasurementBuffer(size=0, capacity={self.capacity})"
        return (
            f"MeasurementBuffer(size={len(self)}, capacity={self.capacity}, "
            f"span=[{self._stamps[0]}, {self._stamps[-1]}])"
        )
