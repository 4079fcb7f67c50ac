import math
from dataclasses import dataclass

MAX_PER_PAGE = 50
DEFAULT_PER_PAGE = 20


@dataclass(frozen=True)
class PageParams:
    page: int
    per_page: int

    @classmethod
    def clamp(cls, page: int = 1, per_page: int = DEFAULT_PER_PAGE, max_per_page: int = MAX_PER_PAGE) -> "PageParams":
        """Страница >= 1, размер страницы в пределах 1..max_per_page"""
        return cls(page=max(page, 1), per_page=min(max(per_page, 1), max_per_page))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def meta(self, total: int, at_least_one_page: bool = False) -> dict:
        pages = math.ceil(total / self.per_page)
        if at_least_one_page:
            # Списки админки показывают пустую первую страницу
            pages = pages or 1
        return {
            "total": total,
            "page": self.page,
            "per_page": self.per_page,
            "pages": pages,
        }
