"""外部JSON API用のHTTPクライアント"""

import time
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions.errors import HTTPError
from ..logging.config import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "GreenAlgeria/1.0"


class HTTPClient:
    """
    JSONを返す外部APIを呼び出すクライアント

    Features:
    - 識別用ヘッダー（User-Agent / Accept-Language）をセッションに設定
    - 1リクエストごとのタイムアウト
    - 任意のリトライ（max_retries=0 の場合は1回だけ送信）
    - 失敗（接続エラー、タイムアウト、非2xx、不正なJSON）はすべて HTTPError
    """

    def __init__(
        self,
        timeout: float = 8.0,
        max_retries: int = 0,
        backoff_factor: float = 0.5,
        user_agent: Optional[str] = None,
        accept_language: Optional[str] = None,
    ):
        """
        Args:
            timeout: リクエストタイムアウト（秒）
            max_retries: 5xx応答時の最大リトライ回数
            backoff_factor: バックオフ係数
            user_agent: User-Agentヘッダー
            accept_language: Accept-Languageヘッダー
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.user_agent = user_agent or DEFAULT_USER_AGENT
        self.accept_language = accept_language

        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        if self.max_retries > 0:
            retry_strategy = Retry(
                total=self.max_retries,
                backoff_factor=self.backoff_factor,
                status_forcelist=(500, 502, 503, 504),
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.user_agent, "Accept": "application/json"})
        if self.accept_language:
            session.headers.update({"Accept-Language": self.accept_language})

        return session

    def get_json(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """
        GETリクエストを送り、レスポンスをJSONとして返す

        Args:
            url: リクエストURL
            params: クエリパラメータ
            headers: 追加ヘッダー

        Returns:
            Any: デコード済みのJSON

        Raises:
            HTTPError: 接続エラー、タイムアウト、非2xxステータス、不正なJSONの場合
        """
        started = time.monotonic()
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise HTTPError(f"GET {url} failed: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.debug(f"GET {url} -> {response.status_code} in {elapsed_ms:.0f}ms")

        try:
            return response.json()
        except ValueError as e:
            raise HTTPError(f"GET {url} returned invalid JSON: {e}") from e

    def close(self) -> None:
        """セッションをクローズ"""
        self.session.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
