"""ネイバーショッピング検索 API クライアント.

順位チェックはこのクライアント経由でのみ検索を行う。
HTTP エラーは errors モジュールの型付き例外に変換して送出し、
リトライ判断は呼び出し側 (rank_checker) に任せる。
"""

from __future__ import annotations

import logging

import requests
from bs4 import BeautifulSoup

from rank_tracker.config import (
    NAVER_CLIENT_ID,
    NAVER_CLIENT_SECRET,
    RANK_SEARCH_EXCLUDE,
    REQUEST_TIMEOUT,
    SEARCH_MAX_REQUESTS_PER_SECOND,
    SHOPPING_SEARCH_URL,
)
from rank_tracker.errors import (
    PermanentError,
    RateLimitedError,
    SearchApiError,
    ServerError,
)
from rank_tracker.models import SearchItem, SearchPage
from rank_tracker.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ShoppingSearchClient:
    """ネイバーショッピング検索 (/v1/search/shop.json) のクライアント."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        rate_limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client_id = client_id if client_id is not None else NAVER_CLIENT_ID
        self._client_secret = client_secret if client_secret is not None else NAVER_CLIENT_SECRET
        self._rate_limiter = rate_limiter or RateLimiter(SEARCH_MAX_REQUESTS_PER_SECOND)
        self._session = session or requests.Session()
        self._timeout = timeout if timeout is not None else REQUEST_TIMEOUT

    def search(
        self,
        query: str,
        start: int = 1,
        display: int = 40,
        sort: str = "sim",
        exclude: str | None = None,
    ) -> SearchPage:
        """ショッピング検索を1回実行する.

        Raises:
            RateLimitedError: HTTP 429
            ServerError: HTTP 5xx、タイムアウト、接続エラー
            PermanentError: その他の HTTP エラー、不正なレスポンス
        """
        params = {"query": query, "display": display, "start": start, "sort": sort}
        if exclude:
            params["exclude"] = exclude
        headers = {
            "X-Naver-Client-Id": self._client_id,
            "X-Naver-Client-Secret": self._client_secret,
        }

        self._rate_limiter.wait()
        try:
            resp = self._session.get(
                SHOPPING_SEARCH_URL, params=params, headers=headers, timeout=self._timeout
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise ServerError(f"検索 API 通信エラー: {e}") from e
        except requests.RequestException as e:
            raise PermanentError(f"検索 API リクエスト失敗: {e}") from e

        if resp.status_code >= 400:
            raise _error_for_status(resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise PermanentError("検索 API レスポンスが JSON ではありません", resp.status_code) from e

        page = parse_search_response(data)
        logger.debug(
            "ショッピング検索完了: query=%s, start=%d, total=%d, items=%d",
            query, start, page.total, len(page.items),
        )
        return page

    def search_page(self, keyword: str, start: int, display: int = 100) -> SearchPage:
        """順位チェック用のページ検索（関連度順、中古・レンタル・海外直購除外）."""
        return self.search(
            keyword, start=start, display=display, sort="sim", exclude=RANK_SEARCH_EXCLUDE
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> ShoppingSearchClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _error_for_status(resp: requests.Response) -> SearchApiError:
    """HTTP ステータスから型付き例外を生成する."""
    status = resp.status_code
    message = f"検索 API HTTP {status}: {_error_message(resp)}"
    if status == 429:
        return RateLimitedError(message, status)
    if status >= 500:
        return ServerError(message, status)
    return PermanentError(message, status)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("errorMessage") or body.get("message") or body)
    return str(body)


def parse_search_response(data: dict) -> SearchPage:
    """検索 API の JSON を SearchPage に変換する."""
    items: list[SearchItem] = []
    for item in data.get("items", []):
        product_id = str(item.get("productId", ""))
        if not product_id:
            continue
        items.append(SearchItem(
            product_id=product_id,
            title=strip_markup(item.get("title", "")),
            mall_name=item.get("mallName", ""),
            link=item.get("link", ""),
            lprice=_safe_int(item.get("lprice")),
        ))

    return SearchPage(
        items=items,
        total=_safe_int(data.get("total")),
        start=_safe_int(data.get("start")),
        display=_safe_int(data.get("display")),
    )


def strip_markup(text: str) -> str:
    """検索語ハイライトの <b> タグなどを除去する."""
    if "<" not in text and "&" not in text:
        return text
    return BeautifulSoup(text, "html.parser").get_text()


def _safe_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
