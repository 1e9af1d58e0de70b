"""有効期限付きジオコーディングキャッシュ"""

import threading
import time
from typing import Callable, Optional

from cachetools import TTLCache

from ....shared.logging.config import get_logger
from ..domain.coordinates import DEFAULT_CACHE_PRECISION, cache_key
from ..domain.models import PlaceNames

logger = get_logger(__name__)


class GeocodeCache:
    """
    座標キー → 地名 のメモリ内キャッシュ

    エントリは挿入からttl秒後に失効し、以降は存在しないものとして扱う。
    キーは正規化より粗い精度で生成し、近接地点でヒット率を高める。
    """

    def __init__(
        self,
        ttl_seconds: float = 3600,
        key_precision: int = DEFAULT_CACHE_PRECISION,
        max_entries: int = 100_000,
        timer: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Args:
            ttl_seconds: エントリの有効期間（秒）
            key_precision: キャッシュキーの小数点以下桁数
            max_entries: 最大件数（メモリ保護用）
            timer: 現在時刻（秒）を返す関数（テスト用に差し替え可能）
        """
        self.ttl_seconds = ttl_seconds
        self.key_precision = key_precision
        self.cache: TTLCache[str, PlaceNames] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=timer or time.monotonic
        )
        self._lock = threading.Lock()
        self.hit_count = 0
        self.miss_count = 0

        logger.info(
            f"GeocodeCache initialized: ttl={ttl_seconds}s, key_precision={key_precision}"
        )

    def key_for(self, latitude: float, longitude: float) -> str:
        """座標からキャッシュキーを生成"""
        return cache_key(latitude, longitude, self.key_precision)

    def get(self, key: str) -> Optional[PlaceNames]:
        """
        キャッシュを参照

        Args:
            key: キャッシュキー

        Returns:
            Optional[PlaceNames]: 有効なエントリ（ない、または失効している場合はNone）
        """
        with self._lock:
            entry = self.cache.get(key)
            if entry is None:
                self.miss_count += 1
            else:
                self.hit_count += 1
            return entry

    def set(self, key: str, entry: PlaceNames) -> None:
        """エントリを保存（有効期限は現在時刻から計算）"""
        with self._lock:
            self.cache[key] = entry

    def clear_cache(self) -> None:
        """キャッシュをクリア"""
        with self._lock:
            cache_size = len(self.cache)
            self.cache.clear()
            self.hit_count = 0
            self.miss_count = 0
        logger.info(f"Cache cleared: {cache_size} entries removed")

    def get_cache_stats(self) -> dict[str, float]:
        """
        キャッシュ統計を取得

        Returns:
            dict[str, float]: キャッシュ統計（サイズ、ヒット数、ミス数、ヒット率）
        """
        with self._lock:
            self.cache.expire()
            total_requests = self.hit_count + self.miss_count
            hit_rate = (self.hit_count / total_requests * 100) if total_requests > 0 else 0.0

            return {
                "cache_size": len(self.cache),
                "hit_count": self.hit_count,
                "miss_count": self.miss_count,
                "total_requests": total_requests,
                "hit_rate_percent": round(hit_rate, 2),
            }
