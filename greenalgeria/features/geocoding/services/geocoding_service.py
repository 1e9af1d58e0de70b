"""逆ジオコーディングサービス"""

from typing import Protocol

from ....shared.exceptions.errors import GeocodingError
from ....shared.http.rate_limiter import RateLimiter
from ....shared.logging.config import get_logger
from ..domain.models import PlaceNames
from ..providers.geocode_cache import GeocodeCache

logger = get_logger(__name__)


class ReverseGeocoder(Protocol):
    """外部逆ジオコーディングAPIのインターフェース"""

    def reverse_geocode(self, latitude: float, longitude: float) -> PlaceNames: ...


class GeocodingService:
    """
    キャッシュ → ペーシング → 外部API → キャッシュ書き込み の順で地名を解決する

    キャッシュ参照をペーシングより先に行うため、近接地点の連続投稿では待機が発生しない。
    失敗はすべて PlaceNames.empty() に縮退し、呼び出し元には例外を投げない。
    """

    def __init__(
        self,
        geocoder: ReverseGeocoder,
        cache: GeocodeCache,
        rate_limiter: RateLimiter,
    ) -> None:
        """
        Args:
            geocoder: 外部APIプロバイダー
            cache: 有効期限付きキャッシュ
            rate_limiter: プロセス全体で共有するペーシングゲート
        """
        self.geocoder = geocoder
        self.cache = cache
        self.rate_limiter = rate_limiter

        logger.info("GeocodingService initialized")

    def resolve(self, latitude: float, longitude: float) -> PlaceNames:
        """
        座標から市・地区を解決

        Args:
            latitude: 緯度
            longitude: 経度

        Returns:
            PlaceNames: 地名（失敗時は両方None、この結果はキャッシュしない）
        """
        key = self.cache.key_for(latitude, longitude)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for coordinates: ({latitude}, {longitude})")
            return cached

        logger.debug(f"Cache miss for coordinates: ({latitude}, {longitude})")
        self.rate_limiter.wait()

        try:
            place = self.geocoder.reverse_geocode(latitude, longitude)
        except GeocodingError as e:
            logger.warning(f"Reverse geocoding fallback for ({latitude}, {longitude}): {e}")
            return PlaceNames.empty()
        except Exception as e:
            logger.error(
                f"Unexpected error during reverse geocoding for ({latitude}, {longitude}): {e}"
            )
            return PlaceNames.empty()

        self.cache.set(key, place)
        return place

    def get_cache_stats(self) -> dict[str, float]:
        """キャッシュ統計を取得"""
        return self.cache.get_cache_stats()

    def clear_cache(self) -> None:
        """キャッシュをクリア"""
        self.cache.clear_cache()
