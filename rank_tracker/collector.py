"""日次順位収集.

処理フロー:
  1. DB から順位追跡対象の商品を取得
  2. 商品ごとに API 予算を確認（不足なら以降の商品は今回スキップ）
  3. 追跡キーワード（無ければ代表キーワード）を一括チェック
  4. 商品単位で DB に一括書き込み
"""

from __future__ import annotations

import logging
import time

from rank_tracker import db
from rank_tracker.budget import BudgetAllocator
from rank_tracker.models import (
    ActiveProduct,
    BudgetFeature,
    DailyCollectionResult,
    RankCheckConfig,
)
from rank_tracker.rank_checker import RankChecker

logger = logging.getLogger(__name__)


def resolve_keywords(product: ActiveProduct) -> list[str]:
    """追跡キーワードを返す. 無ければ代表キーワード1件、それも無ければ空."""
    keywords = db.get_tracked_keywords(product.id)
    if keywords:
        return keywords
    if product.representative_keyword:
        logger.debug("追跡キーワードなし、代表キーワードを使用: product=%s, keyword=%s",
                     product.id, product.representative_keyword)
        return [product.representative_keyword]
    return []


def collect_daily_rankings(
    checker: RankChecker,
    budget: BudgetAllocator,
    config: RankCheckConfig | None = None,
) -> DailyCollectionResult:
    """全追跡商品の順位を収集して保存する.

    商品単位の失敗はログに残して次の商品へ進む。
    追跡商品一覧の取得失敗のみ例外を送出する。
    """
    config = config or RankCheckConfig.from_settings()
    started = time.monotonic()
    summary = DailyCollectionResult()

    logger.info("日次順位収集 開始")

    products = db.get_active_products()
    if not products:
        logger.info("追跡対象の商品がありません")
        return summary

    logger.info("追跡対象の商品: %d 件", len(products))

    for index, product in enumerate(products):
        if not budget.can_make_call(BudgetFeature.RANKING):
            summary.skipped_products = len(products) - index
            logger.warning("API 予算不足のため収集を中断: 処理済み=%d, 残り=%d",
                           summary.total_products, summary.skipped_products)
            break

        external_id = product.naver_shopping_product_id
        if not external_id:
            logger.debug("ネイバーショッピング商品IDなし、スキップ: product=%s", product.id)
            continue

        try:
            keywords = resolve_keywords(product)
            if not keywords:
                logger.debug("追跡・代表キーワードなし、スキップ: product=%s", product.id)
                continue

            batch = checker.batch_get_product_ranks(external_id, keywords, config)
            db.save_rank_results(batch.results, config.rank_check_limit)
        except Exception:
            summary.failed_products += 1
            logger.exception("商品の順位収集に失敗、次の商品へ: product=%s", product.id)
            continue

        summary.total_products += 1
        summary.total_keywords += len(batch.results)
        summary.total_api_calls += batch.total_api_calls

    summary.execution_time_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "日次順位収集 完了: 商品=%d, キーワード=%d, API 呼び出し=%d, スキップ=%d, 失敗=%d, %dms",
        summary.total_products, summary.total_keywords, summary.total_api_calls,
        summary.skipped_products, summary.failed_products, summary.execution_time_ms,
    )
    return summary
