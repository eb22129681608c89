"""ネイバーショッピング検索順位取得 — メインエントリーポイント.

処理フロー:
  1. API 予算トラッカー・検索クライアントを生成
  2. 全追跡商品×キーワードの順位を収集・記録
  3. 収集サマリと予算の使用状況をログ出力
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime

from rank_tracker import db
from rank_tracker.budget import BudgetAllocator
from rank_tracker.collector import collect_daily_rankings
from rank_tracker.config import LOG_DIR
from rank_tracker.rank_checker import RankChecker
from rank_tracker.search_client import ShoppingSearchClient


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(exist_ok=True)
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def run(budget: BudgetAllocator | None = None) -> int:
    """メイン処理. 終了コードを返す."""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== 検索順位取得 開始 ===")

    budget = budget or BudgetAllocator()

    with ShoppingSearchClient() as client:
        checker = RankChecker(client, budget, error_sink=db.insert_ranking_error_log)
        try:
            result = collect_daily_rankings(checker, budget)
        except Exception:
            logger.exception("順位収集を中断しました")
            return 1

    # サマリ
    logger.info("=== 検索順位取得 完了 ===")
    logger.info("商品: %d 件, キーワード: %d 件, API 呼び出し: %d 回, 所要時間: %.1f 秒",
                result.total_products, result.total_keywords, result.total_api_calls,
                result.execution_time_ms / 1000)
    if result.skipped_products or result.failed_products:
        logger.warning("予算不足でスキップ: %d 件, 失敗: %d 件",
                       result.skipped_products, result.failed_products)

    for name, usage in budget.get_status().items():
        logger.info("API 予算 %s: %d / %d (残り %d)",
                    name, usage["used"], usage["limit"], usage["remaining"])
    return 0


if __name__ == "__main__":
    sys.exit(run())
