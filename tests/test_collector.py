"""collector モジュールのテスト（DB はモック）."""

from unittest.mock import patch

import pytest

from rank_tracker.collector import collect_daily_rankings
from rank_tracker.models import ActiveProduct, BudgetFeature, RankCheckConfig
from rank_tracker.rank_checker import RankChecker

from conftest import FakeSearchClient

CONFIG = RankCheckConfig(rank_check_limit=300, display_per_request=100, rate_limit_delay_ms=0)


def _product(pid, external="target", representative=None):
    return ActiveProduct(id=pid, naver_shopping_product_id=external,
                         representative_keyword=representative)


@pytest.fixture
def checker(budget, sleeps):
    return RankChecker(FakeSearchClient(position=5), budget, sleep=sleeps.append)


@pytest.fixture
def mock_db():
    with patch("rank_tracker.collector.db") as mock:
        mock.get_tracked_keywords.return_value = []
        yield mock


class TestCollectDailyRankings:
    """collect_daily_rankings のテスト."""

    def test_collects_and_saves_per_product(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = [_product(1), _product(2)]
        mock_db.get_tracked_keywords.side_effect = lambda pid: {1: ["a", "b"], 2: ["c"]}[pid]

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 2
        assert result.total_keywords == 3
        assert result.total_api_calls == 3
        assert result.skipped_products == 0
        assert result.failed_products == 0
        assert mock_db.save_rank_results.call_count == 2

        saved, rank_limit = mock_db.save_rank_results.call_args_list[0].args
        assert [r.keyword for r in saved] == ["a", "b"]
        assert rank_limit == 300

    def test_no_active_products(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = []

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 0
        assert result.execution_time_ms == 0
        mock_db.save_rank_results.assert_not_called()

    def test_representative_keyword_fallback(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = [_product(1, representative="ノニジュース")]

        result = collect_daily_rankings(checker, budget, CONFIG)

        saved, _ = mock_db.save_rank_results.call_args.args
        assert [r.keyword for r in saved] == ["ノニジュース"]
        assert result.total_keywords == 1

    def test_product_without_keywords_skipped(self, checker, budget, mock_db):
        """キーワードが無い商品は予算を使わずスキップすること."""
        mock_db.get_active_products.return_value = [_product(1)]

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 0
        assert budget.get_status()["total"]["used"] == 0
        mock_db.save_rank_results.assert_not_called()

    def test_product_without_external_id_skipped(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = [_product(1, external=None, representative="kw")]

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 0
        mock_db.get_tracked_keywords.assert_not_called()

    def test_budget_exhaustion_stops_run(self, checker, budget, mock_db):
        """予算が尽きたら残りの商品をスキップし、件数を記録すること."""
        mock_db.get_active_products.return_value = [_product(1), _product(2), _product(3)]
        mock_db.get_tracked_keywords.return_value = ["a"]

        def save(results, rank_limit):
            # 1 商品目の保存後に予算を使い切る
            budget.record_call(BudgetFeature.COLOR_ANALYSIS, 25000)

        mock_db.save_rank_results.side_effect = save

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 1
        assert result.skipped_products == 2
        assert mock_db.save_rank_results.call_count == 1

    def test_save_failure_does_not_stop_run(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = [_product(1), _product(2)]
        mock_db.get_tracked_keywords.return_value = ["a"]
        mock_db.save_rank_results.side_effect = [RuntimeError("insert failed"), None]

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 1
        assert result.failed_products == 1
        assert mock_db.save_rank_results.call_count == 2

    def test_keyword_lookup_failure_does_not_stop_run(self, checker, budget, mock_db):
        mock_db.get_active_products.return_value = [_product(1), _product(2)]
        mock_db.get_tracked_keywords.side_effect = [RuntimeError("timeout"), ["a"]]

        result = collect_daily_rankings(checker, budget, CONFIG)

        assert result.total_products == 1
        assert result.failed_products == 1

    def test_active_products_failure_is_fatal(self, checker, budget, mock_db):
        mock_db.get_active_products.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            collect_daily_rankings(checker, budget, CONFIG)
