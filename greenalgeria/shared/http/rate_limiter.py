"""外部API呼び出しのペーシング（最小間隔の保証）"""

import threading
import time
from typing import Callable, Optional

from ..logging.config import get_logger

logger = get_logger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def _sleep_ms(milliseconds: float) -> None:
    time.sleep(milliseconds / 1000.0)


class RateLimiter:
    """
    プロセス全体で共有するペーシングゲート

    外部サービスへの連続した呼び出しの「開始時刻」の間隔が
    min_gap_ms 以上になるように呼び出し元を待機させる。
    トークンバケットではなく、直前の呼び出し時刻のみを状態として持つ。

    FastAPIは同期エンドポイントをスレッドプールで実行するため、
    待機を含むチェック＆セットは1つのロック内で行う（厳密なペーシング）。
    """

    def __init__(
        self,
        min_gap_ms: float = 500,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            min_gap_ms: 呼び出し間の最小間隔（ミリ秒）
            clock: 現在時刻（ミリ秒）を返す関数（テスト用に差し替え可能）
            sleep: 指定ミリ秒だけ待機する関数（テスト用に差し替え可能）
        """
        if min_gap_ms < 0:
            raise ValueError("min_gap_ms must be >= 0")

        self.min_gap_ms = min_gap_ms
        self._clock = clock or _monotonic_ms
        self._sleep = sleep or _sleep_ms
        self._lock = threading.Lock()

        self.last_call_ms: Optional[float] = None

        logger.debug(f"RateLimiter initialized: min_gap={self.min_gap_ms:.0f}ms")

    def wait(self) -> float:
        """
        次の外部呼び出しまで必要な時間だけ待機し、呼び出し時刻を記録

        Returns:
            float: 実際に待機した時間（ミリ秒）
        """
        with self._lock:
            waited = 0.0
            if self.last_call_ms is not None:
                elapsed = self._clock() - self.last_call_ms
                waited = max(0.0, self.min_gap_ms - elapsed)

                if waited > 0:
                    logger.debug(f"Rate limiting: sleeping for {waited:.0f}ms")
                    self._sleep(waited)

            self.last_call_ms = self._clock()
            return waited

    def reset(self) -> None:
        """レート制限をリセット"""
        with self._lock:
            self.last_call_ms = None
        logger.debug("RateLimiter reset")
