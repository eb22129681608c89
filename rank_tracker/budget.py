"""検索 API の1日あたり呼び出し予算の管理.

日次上限を機能ごとに配分し、配分を使い切った機能は reserve（予備枠）から
借りられる。カウンタはプロセス内メモリのみで保持し、ロックは取らない
（順位チェックは単一スレッドで逐次実行する前提）。
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from rank_tracker import config
from rank_tracker.models import BudgetFeature

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BudgetAllocator:
    """機能別の API 呼び出し予算トラッカー.

    Args:
        daily_limit: 全機能合計の1日上限
        limits: 機能ごとの配分 ({"ranking": 15000, ...})
        today: 現在日付を返す関数. 日付が変わるとカウンタをリセットする
    """

    def __init__(
        self,
        daily_limit: int | None = None,
        limits: dict[str, int] | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._today = today or _utc_today
        self._daily_limit = daily_limit if daily_limit is not None else config.DAILY_CALL_LIMIT
        source = limits if limits is not None else config.API_BUDGET
        self._limits = {f: int(source.get(f.value, 0)) for f in BudgetFeature}
        self._used = {f: 0 for f in BudgetFeature}
        self._reset_date = self._today()

    @property
    def reset_date(self) -> date:
        return self._reset_date

    def can_make_call(self, feature: BudgetFeature | str) -> bool:
        """その機能で API を呼べるか判定する（記録はしない）."""
        self._check_daily_reset()
        feature = BudgetFeature(feature)

        total_used = self._total_used()
        if total_used >= self._daily_limit:
            logger.warning("1日の API 呼び出し上限に到達: used=%d, limit=%d",
                           total_used, self._daily_limit)
            return False

        if self._used[feature] < self._limits[feature]:
            return True

        # 配分を使い切った機能は予備枠から借りる
        reserve = BudgetFeature.RESERVE
        if feature is not reserve and self._used[reserve] < self._limits[reserve]:
            return True

        logger.warning("機能別の API 予算超過: feature=%s, used=%d, limit=%d",
                       feature.value, self._used[feature], self._limits[feature])
        return False

    def record_call(self, feature: BudgetFeature | str, count: int = 1) -> None:
        """API 呼び出しを記録する.

        上限チェックはしない（事前に can_make_call を呼ぶこと）。
        機能の配分を超えた分は reserve に計上する。
        """
        self._check_daily_reset()
        feature = BudgetFeature(feature)
        if count < 0:
            raise ValueError(f"count は 0 以上: {count}")

        new_used = self._used[feature] + count
        limit = self._limits[feature]
        if new_used > limit:
            overflow = new_used - limit
            self._used[feature] = limit
            self._used[BudgetFeature.RESERVE] += overflow
        else:
            self._used[feature] = new_used

    def get_status(self) -> dict[str, dict[str, int]]:
        """機能別・合計の使用状況を返す."""
        self._check_daily_reset()
        status = {
            f.value: _usage(self._used[f], self._limits[f]) for f in BudgetFeature
        }
        status["total"] = _usage(self._total_used(), self._daily_limit)
        return status

    def reset_daily(self) -> None:
        """全カウンタを 0 に戻す."""
        self._used = {f: 0 for f in BudgetFeature}
        self._reset_date = self._today()
        logger.info("API 予算を日次リセット: reset_date=%s", self._reset_date.isoformat())

    def _total_used(self) -> int:
        return sum(self._used.values())

    def _check_daily_reset(self) -> None:
        if self._today() != self._reset_date:
            self.reset_daily()


def _usage(used: int, limit: int) -> dict[str, int]:
    return {"used": used, "limit": limit, "remaining": max(0, limit - used)}
