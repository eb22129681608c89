"""Supabase データベース操作モジュール.

テーブルのスキーマは SUPABASE_SCHEMA（既定 public）。
クライアントは最初のクエリ時に生成する。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache

from supabase import Client, create_client

from rank_tracker import config
from rank_tracker.models import ActiveProduct, ErrorLogEntry, RankResult

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_client() -> Client:
    if not config.SUPABASE_URL or not config.SUPABASE_SECRET_KEY:
        raise RuntimeError("SUPABASE_URL / SUPABASE_SECRET_KEY が設定されていません")
    return create_client(config.SUPABASE_URL, config.SUPABASE_SECRET_KEY)


def _table(name: str):
    """設定スキーマのテーブルを参照する."""
    return _get_client().schema(config.SUPABASE_SCHEMA).table(name)


def get_active_products() -> list[ActiveProduct]:
    """順位追跡対象の商品を取得する.

    テスト除外されておらず、ネイバーショッピング商品IDを持つ商品のみ。
    """
    resp = (
        _table("products")
        .select("id, naver_shopping_product_id, representative_keyword")
        .eq("excluded_from_test", False)
        .not_.is_("naver_shopping_product_id", "null")
        .order("id")
        .execute()
    )

    return [
        ActiveProduct(
            id=row["id"],
            naver_shopping_product_id=row.get("naver_shopping_product_id"),
            representative_keyword=row.get("representative_keyword"),
        )
        for row in resp.data
    ]


def get_tracked_keywords(product_id: int) -> list[str]:
    """商品に紐づく追跡対象キーワードを取得する.

    Args:
        product_id: products.id（内部ID）
    """
    resp = (
        _table("keyword_product_mapping")
        .select("keyword_id, keywords:keyword_id(keyword)")
        .eq("product_id", product_id)
        .eq("is_tracked", True)
        .execute()
    )

    keywords: list[str] = []
    for row in resp.data:
        keyword = (row.get("keywords") or {}).get("keyword")
        if keyword:
            keywords.append(keyword)
    return keywords


def _rank_record(result: RankResult, rank_limit: int) -> dict:
    return {
        "product_id": result.product_id,
        "keyword": result.keyword,
        "rank": result.rank,
        "rank_limit": rank_limit,
        "checked_at": result.checked_at.isoformat(),
        "api_calls": result.api_calls,
    }


def save_rank_result(result: RankResult, rank_limit: int | None = None) -> None:
    """順位結果を1件挿入する."""
    limit = rank_limit if rank_limit is not None else config.RANK_CHECK_LIMIT
    _table("keyword_ranking_daily").insert(_rank_record(result, limit)).execute()


def save_rank_results(results: list[RankResult], rank_limit: int) -> None:
    """1商品分の順位結果を一括挿入する.

    1回の insert で送るため、全行が同時に反映される（一部だけ見える状態にならない）。

    Args:
        results: 順位結果
        rank_limit: チェックに使った最大探索順位
    """
    if not results:
        return
    records = [_rank_record(r, rank_limit) for r in results]
    _table("keyword_ranking_daily").insert(records).execute()
    logger.debug("keyword_ranking_daily に %d 件挿入", len(records))


def insert_ranking_error_log(entry: ErrorLogEntry) -> None:
    """リトライ上限に達した順位チェックを ranking_error_logs に記録する."""
    _table("ranking_error_logs").insert(entry.to_record()).execute()
    logger.info("ranking_error_logs に記録: keyword=%s, product_id=%s, code=%s",
                entry.keyword, entry.product_id, entry.error_code)


def get_rank_history(product_id: str, keyword: str, limit: int = 30) -> list[RankResult]:
    """商品×キーワードの順位履歴を古い順に返す（直近 limit 件）."""
    resp = (
        _table("keyword_ranking_daily")
        .select("product_id, keyword, rank, checked_at, api_calls")
        .eq("product_id", product_id)
        .eq("keyword", keyword)
        .order("checked_at", desc=True)
        .limit(limit)
        .execute()
    )

    history = [
        RankResult(
            keyword=row["keyword"],
            product_id=row["product_id"],
            rank=row.get("rank"),
            checked_at=_parse_timestamp(row["checked_at"]),
            api_calls=row.get("api_calls") or 0,
        )
        for row in resp.data
    ]
    history.sort(key=lambda r: r.checked_at)
    return history


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
