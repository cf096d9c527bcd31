import math
from typing import Generic, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20


class Paginator(Generic[T]):
    """
    固定页大小的分页器 (页码从 1 开始)

    页码只在翻页时被限制在 [1, page_count]；替换 items 不会重新限制当前页。
    """

    def __init__(self, items: Sequence[T] = (), page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self.items: Sequence[T] = items
        self.page = 1

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def page_count(self) -> int:
        return math.ceil(self.count / self.page_size)

    def clamp(self, page: int) -> int:
        return max(1, min(page, self.page_count))

    def go_to(self, page: int) -> int:
        self.page = self.clamp(page)
        return self.page

    def next_page(self) -> int:
        return self.go_to(self.page + 1)

    def previous_page(self) -> int:
        return self.go_to(self.page - 1)

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count

    @property
    def is_paginated(self) -> bool:
        return self.count > self.page_size

    def current_slice(self) -> List[T]:
        start = (self.page - 1) * self.page_size
        return list(self.items[start:self.page * self.page_size])

    def showing_range(self) -> Tuple[int, int, int]:
        """(first, last, total) in 1-based item numbers for the current page."""
        start = (self.page - 1) * self.page_size + 1
        end = min(self.page * self.page_size, self.count)
        return start, end, self.count
