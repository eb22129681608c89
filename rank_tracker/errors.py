"""検索 API エラー定義.

リトライ判定は例外の型で行う:
  - TransientError (RateLimitedError / ServerError): 待機して再試行
  - PermanentError: 再試行しない
"""

from __future__ import annotations


class SearchApiError(Exception):
    """検索 API 呼び出しエラーの基底クラス."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def error_code(self) -> str:
        """エラーログに記録するコード. ステータス不明時は UNKNOWN."""
        return str(self.status_code) if self.status_code is not None else "UNKNOWN"


class TransientError(SearchApiError):
    """待てば回復しうるエラー."""


class RateLimitedError(TransientError):
    """HTTP 429."""

    def __init__(self, message: str, status_code: int | None = 429) -> None:
        super().__init__(message, status_code)


class ServerError(TransientError):
    """HTTP 5xx、タイムアウト、接続断."""


class PermanentError(SearchApiError):
    """認証エラー・不正なリクエストなど、再試行しても回復しないエラー."""
