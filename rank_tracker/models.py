"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from rank_tracker import config


class BudgetFeature(str, Enum):
    """API 予算を共有する機能区分."""

    RANKING = "ranking"
    COLOR_ANALYSIS = "color_analysis"
    RESERVE = "reserve"


@dataclass
class SearchItem:
    """ショッピング検索結果の1商品を表す."""

    product_id: str  # ネイバーショッピング商品ID
    title: str  # <b> タグ除去済み
    mall_name: str = ""
    link: str = ""
    lprice: int = 0


@dataclass
class SearchPage:
    """検索 API 1回分のレスポンス."""

    items: list[SearchItem]
    total: int
    start: int
    display: int


@dataclass(frozen=True)
class RankCheckConfig:
    """順位チェック設定. 呼び出し単位で生成し、変更しない."""

    rank_check_limit: int = field(default_factory=lambda: config.RANK_CHECK_LIMIT)
    display_per_request: int = field(default_factory=lambda: config.DISPLAY_PER_REQUEST)
    rate_limit_delay_ms: int = field(default_factory=lambda: config.RATE_LIMIT_DELAY_MS)

    def __post_init__(self) -> None:
        if self.rank_check_limit < 1:
            raise ValueError(f"rank_check_limit は 1 以上: {self.rank_check_limit}")
        if not 1 <= self.display_per_request <= 100:
            raise ValueError(f"display_per_request は 1〜100: {self.display_per_request}")
        if self.rate_limit_delay_ms < 0:
            raise ValueError(f"rate_limit_delay_ms は 0 以上: {self.rate_limit_delay_ms}")

    @classmethod
    def from_settings(cls, **overrides: int) -> RankCheckConfig:
        """グローバル設定を既定値とし、指定項目だけ上書きした設定を返す."""
        return cls(**overrides)

    @property
    def rate_limit_delay_seconds(self) -> float:
        return self.rate_limit_delay_ms / 1000


@dataclass
class RankResult:
    """1キーワードの順位チェック結果."""

    keyword: str
    product_id: str  # ネイバーショッピング商品ID
    rank: int | None  # None = 圏外（またはチェック失敗）
    checked_at: datetime
    api_calls: int


@dataclass(frozen=True)
class BatchRankResult:
    """1商品分の一括順位チェック結果."""

    results: list[RankResult]
    total_api_calls: int
    execution_time_ms: int


@dataclass
class DailyCollectionResult:
    """日次順位収集の集計."""

    total_products: int = 0
    total_keywords: int = 0
    total_api_calls: int = 0
    execution_time_ms: int = 0
    skipped_products: int = 0  # 予算切れで未処理
    failed_products: int = 0


@dataclass
class ActiveProduct:
    """順位追跡対象の商品."""

    id: int  # products.id
    naver_shopping_product_id: str | None
    representative_keyword: str | None


@dataclass
class ErrorLogEntry:
    """リトライ上限到達時に残すエラーログ."""

    keyword: str
    product_id: str
    error_code: str
    error_message: str
    created_at: datetime

    def to_record(self) -> dict:
        return {
            "keyword": self.keyword,
            "product_id": self.product_id,
            "error_code": self.error_code,
            "error_msg": self.error_message,
            "created_at": self.created_at.isoformat(),
        }
