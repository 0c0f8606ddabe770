# src/testfork/runtime/completion.py
"""
Per-descriptor completion bookkeeping for a single run.
"""

from attrs import field, mutable

from testfork.exceptions import DuplicateCompletionError


@mutable(slots=True)
class CompletionTracker:
    """Records which descriptors of a batch have completed, each exactly once."""

    total: int = field()
    _completed: dict[int, bool] = field(init=False)

    def __attrs_post_init__(self) -> None:
        self._completed = {index: False for index in range(self.total)}

    @property
    def completed_count(self) -> int:
        return sum(self._completed.values())

    @property
    def is_complete(self) -> bool:
        return all(self._completed.values())

    def mark(self, index: int) -> bool:
        """
        Marks descriptor `index` complete and returns True if it was the last one.

        Raises:
            DuplicateCompletionError: if `index` already completed.
            KeyError: if `index` is not part of this batch.
        """
        if self._completed[index]:
            raise DuplicateCompletionError(index)
        self._completed[index] = True
        return self.is_complete
