"""キーワード別の商品順位チェック.

処理の階層:
  1. get_product_rank — 検索結果ページを順に走査し、見つかった時点で打ち切る
  2. get_product_rank_with_retry — 429 / 5xx のみ待機して再試行
  3. batch_get_product_ranks — 1商品の全キーワードを逐次チェック（失敗は圏外扱いで続行）
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Protocol

from rank_tracker.budget import BudgetAllocator
from rank_tracker.config import DEFAULT_MAX_RETRIES, RETRY_BASE_DELAY_MS
from rank_tracker.errors import RateLimitedError, SearchApiError, ServerError
from rank_tracker.models import (
    BatchRankResult,
    BudgetFeature,
    ErrorLogEntry,
    RankCheckConfig,
    RankResult,
    SearchPage,
)

logger = logging.getLogger(__name__)


class SearchClient(Protocol):
    def search_page(self, keyword: str, start: int, display: int = 100) -> SearchPage: ...


ErrorSink = Callable[[ErrorLogEntry], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RankChecker:
    """検索 API を使った順位チェッカー.

    Args:
        client: search_page() を持つ検索クライアント
        budget: API 呼び出しを計上する予算トラッカー
        error_sink: リトライ上限到達時のエラーログ書き込み先
        sleep: 待機関数（秒）
    """

    def __init__(
        self,
        client: SearchClient,
        budget: BudgetAllocator,
        error_sink: ErrorSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.budget = budget
        self._error_sink = error_sink
        self._sleep = sleep

    def get_product_rank(
        self,
        keyword: str,
        product_id: str,
        config: RankCheckConfig | None = None,
    ) -> RankResult:
        """キーワード検索結果での商品順位を調べる.

        1 位から rank_check_limit 位まで display_per_request 件ずつ検索し、
        商品が見つかった時点で残りのページは取得しない。
        API エラーはそのまま送出する（再試行しない）。

        Returns:
            RankResult。rank_check_limit 以内に無ければ rank=None（圏外）。
        """
        config = config or RankCheckConfig.from_settings()
        limit = config.rank_check_limit
        display = config.display_per_request
        api_calls = 0

        logger.debug("順位チェック開始: keyword=%s, product_id=%s, limit=%d",
                     keyword, product_id, limit)

        for start in range(1, limit + 1, display):
            # 最終ページは limit を超えて取得しない
            page_size = min(display, limit - start + 1)
            page = self.client.search_page(keyword, start, page_size)
            api_calls += 1
            self.budget.record_call(BudgetFeature.RANKING)

            for index, item in enumerate(page.items):
                if item.product_id == product_id:
                    rank = start + index
                    logger.debug("順位発見: keyword=%s, product_id=%s, rank=%d, api_calls=%d",
                                 keyword, product_id, rank, api_calls)
                    return RankResult(keyword, product_id, rank, _now(), api_calls)

            if start + display <= limit:
                self._sleep(config.rate_limit_delay_seconds)

        logger.debug("圏外: keyword=%s, product_id=%s, limit=%d, api_calls=%d",
                     keyword, product_id, limit, api_calls)
        return RankResult(keyword, product_id, None, _now(), api_calls)

    def get_product_rank_with_retry(
        self,
        keyword: str,
        product_id: str,
        config: RankCheckConfig | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> RankResult:
        """再試行付きの順位チェック.

        - 429: 指数バックオフ (1000ms * 2^attempt)
        - 5xx / 通信エラー: 線形待機 (1000ms * (attempt + 1))
        - その他: 即座に送出

        max_retries 回試行しても回復しなければエラーログを残して送出する。
        """
        if max_retries < 1:
            raise ValueError(f"max_retries は 1 以上: {max_retries}")

        last_error: SearchApiError | None = None
        for attempt in range(max_retries):
            try:
                return self.get_product_rank(keyword, product_id, config)
            except RateLimitedError as e:
                delay_ms = RETRY_BASE_DELAY_MS * 2 ** attempt
                kind = "Rate limit"
                last_error = e
            except ServerError as e:
                delay_ms = RETRY_BASE_DELAY_MS * (attempt + 1)
                kind = "サーバーエラー"
                last_error = e
            except Exception as e:
                logger.error("順位チェックで回復不能なエラー: keyword=%s, product_id=%s, error=%s",
                             keyword, product_id, e)
                raise

            if attempt + 1 >= max_retries:
                break
            logger.warning("%s 発生、%dms 待機して再試行: keyword=%s, attempt=%d/%d, status=%s",
                           kind, delay_ms, keyword, attempt + 1, max_retries,
                           last_error.status_code)
            self._sleep(delay_ms / 1000)

        logger.error("順位チェックのリトライ上限超過: keyword=%s, product_id=%s, max_retries=%d",
                     keyword, product_id, max_retries)
        self._log_error(keyword, product_id, last_error)
        raise last_error

    def batch_get_product_ranks(
        self,
        product_id: str,
        keywords: list[str],
        config: RankCheckConfig | None = None,
    ) -> BatchRankResult:
        """1商品の複数キーワードを順番にチェックする.

        キーワード単位の失敗は rank=None, api_calls=0 として記録し、残りを続行する。
        """
        config = config or RankCheckConfig.from_settings()
        started = time.monotonic()
        keywords = [k for k in keywords if k]
        results: list[RankResult] = []
        total_api_calls = 0

        logger.info("一括順位チェック開始: product_id=%s, keywords=%d", product_id, len(keywords))

        for i, keyword in enumerate(keywords):
            try:
                result = self.get_product_rank_with_retry(keyword, product_id, config)
                results.append(result)
                total_api_calls += result.api_calls
            except Exception as e:
                logger.error("キーワードの順位チェック失敗、スキップ: keyword=%s, product_id=%s, error=%s",
                             keyword, product_id, e)
                results.append(RankResult(keyword, product_id, None, _now(), 0))

            if i < len(keywords) - 1:
                self._sleep(config.rate_limit_delay_seconds)

        execution_time_ms = int((time.monotonic() - started) * 1000)
        logger.info("一括順位チェック完了: product_id=%s, keywords=%d, api_calls=%d, %dms",
                    product_id, len(keywords), total_api_calls, execution_time_ms)

        return BatchRankResult(
            results=results,
            total_api_calls=total_api_calls,
            execution_time_ms=execution_time_ms,
        )

    def _log_error(self, keyword: str, product_id: str, error: SearchApiError) -> None:
        """エラーログを書き込む. 書き込み失敗は元のエラーを隠さないよう警告のみ."""
        if self._error_sink is None:
            return
        entry = ErrorLogEntry(
            keyword=keyword,
            product_id=product_id,
            error_code=error.error_code,
            error_message=str(error),
            created_at=_now(),
        )
        try:
            self._error_sink(entry)
        except Exception as e:
            logger.warning("エラーログの保存に失敗: keyword=%s, product_id=%s, error=%s",
                           keyword, product_id, e)
