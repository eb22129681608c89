"""テスト共通のフィクスチャ・フェイク."""

from __future__ import annotations

from datetime import date

import pytest

from rank_tracker.budget import BudgetAllocator
from rank_tracker.models import SearchItem, SearchPage


class FakeSearchClient:
    """商品を絶対順位 position に配置した検索結果を返すフェイク.

    errors に例外を並べると、先頭から順に search_page 呼び出しで送出する。
    failing_keywords に指定したキーワードは毎回その例外を送出する。
    """

    def __init__(self, target: str = "target", position: int | None = None, errors=None,
                 failing_keywords=None):
        self.target = target
        self.position = position
        self.errors = list(errors or [])
        self.failing_keywords = dict(failing_keywords or {})
        self.calls: list[tuple[str, int, int]] = []

    def search_page(self, keyword: str, start: int, display: int = 100) -> SearchPage:
        self.calls.append((keyword, start, display))
        if keyword in self.failing_keywords:
            raise self.failing_keywords[keyword]
        if self.errors:
            raise self.errors.pop(0)
        items = []
        for pos in range(start, start + display):
            pid = self.target if pos == self.position else f"other-{pos}"
            items.append(SearchItem(product_id=pid, title=f"商品{pos}"))
        return SearchPage(items=items, total=10000, start=start, display=display)


class FakeClock:
    """日付を進められる時計."""

    def __init__(self, today: date = date(2026, 2, 27)):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def budget(clock) -> BudgetAllocator:
    return BudgetAllocator(
        daily_limit=25000,
        limits={"ranking": 15000, "color_analysis": 5000, "reserve": 5000},
        today=clock,
    )


@pytest.fixture
def sleeps() -> list[float]:
    """RankChecker に渡す sleep の記録先."""
    return []
