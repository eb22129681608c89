"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
# クライアント生成時に検証する（import 時には要求しない）
SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.getenv("SUPABASE_SECRET_KEY", "")
SUPABASE_SCHEMA: str = os.getenv("SUPABASE_SCHEMA", "public")

# --- ネイバーショッピング検索 API ---
NAVER_CLIENT_ID: str = os.getenv("NAVER_CLIENT_ID", "")
NAVER_CLIENT_SECRET: str = os.getenv("NAVER_CLIENT_SECRET", "")
SHOPPING_SEARCH_URL = "https://openapi.naver.com/v1/search/shop.json"

# ランキング検索から除外する商品種別（中古・レンタル・海外直購）
RANK_SEARCH_EXCLUDE = "used:rental:cbshop"

# --- リクエスト設定 ---
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "15"))  # 秒
SEARCH_MAX_REQUESTS_PER_SECOND = int(os.getenv("SEARCH_MAX_REQUESTS_PER_SECOND", "10"))

# --- 順位チェック ---
RANK_CHECK_LIMIT = int(os.getenv("RANK_CHECK_LIMIT", "1000"))  # 最大探索順位
DISPLAY_PER_REQUEST = int(os.getenv("DISPLAY_PER_REQUEST", "100"))  # API 上限 100
RATE_LIMIT_DELAY_MS = int(os.getenv("RATE_LIMIT_DELAY", "100"))  # ミリ秒

# --- リトライ ---
DEFAULT_MAX_RETRIES = 3
RETRY_BASE_DELAY_MS = 1000

# --- API 呼び出し予算（1日あたり） ---
DAILY_CALL_LIMIT = int(os.getenv("DAILY_CALL_LIMIT", "25000"))
API_BUDGET = {
    "ranking": int(os.getenv("API_BUDGET_RANKING", "15000")),
    "color_analysis": int(os.getenv("API_BUDGET_COLOR_ANALYSIS", "5000")),
    "reserve": int(os.getenv("API_BUDGET_RESERVE", "5000")),
}

# --- ログ ---
LOG_DIR = _PROJECT_ROOT / "logs"
