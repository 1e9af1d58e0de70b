"""Nominatim (OpenStreetMap) 逆ジオコーディングAPI実装"""
from typing import Any

from ....shared.exceptions.errors import GeocodingError, HTTPError
from ....shared.http.client import HTTPClient
from ....shared.logging.config import get_logger
from ..domain.models import PlaceNames

logger = get_logger(__name__)

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"

# address オブジェクト内で優先順に参照するキー
CITY_KEYS = ("city", "town", "village", "municipality", "county")
DISTRICT_KEYS = ("suburb", "neighbourhood", "city_district", "state_district")


def _first_present(address: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = address.get(key)
        if value:
            return value
    return None


def parse_address(address: Any) -> PlaceNames:
    """
    Nominatimの address オブジェクトから市・地区を抽出

    Args:
        address: レスポンスJSONの address（辞書でない場合は空として扱う）

    Returns:
        PlaceNames: 抽出結果（見つからないフィールドはNone）
    """
    if not isinstance(address, dict):
        address = {}

    return PlaceNames(
        city=_first_present(address, CITY_KEYS),
        district=_first_present(address, DISTRICT_KEYS),
    )


class NominatimGeocoder:
    """Nominatim Reverse API実装"""

    def __init__(
        self,
        http_client: HTTPClient,
        base_url: str = NOMINATIM_REVERSE_URL,
        zoom: int = 13,
    ) -> None:
        """
        Args:
            http_client: HTTPクライアント（User-Agent・タイムアウト設定済み）
            base_url: reverse エンドポイントのURL
            zoom: 詳細度（13で市・地区レベル）
        """
        self.http_client = http_client
        self.base_url = base_url
        self.zoom = zoom
        logger.info(f"NominatimGeocoder initialized: {base_url}")

    def reverse_geocode(self, latitude: float, longitude: float) -> PlaceNames:
        """
        座標から地名を取得（逆ジオコーディング、1回のみ送信）

        Args:
            latitude: 緯度
            longitude: 経度

        Returns:
            PlaceNames: 地名（address がない場合は両方None）

        Raises:
            GeocodingError: HTTPエラー、タイムアウト、不正なレスポンスの場合
        """
        params = {
            "format": "jsonv2",
            "lat": str(latitude),
            "lon": str(longitude),
            "zoom": str(self.zoom),
            "addressdetails": "1",
        }

        try:
            payload = self.http_client.get_json(self.base_url, params=params)
        except HTTPError as e:
            raise GeocodingError(f"Nominatim request failed: {e}") from e

        if not isinstance(payload, dict):
            raise GeocodingError(
                f"Nominatim returned unexpected payload type: {type(payload).__name__}"
            )

        place = parse_address(payload.get("address"))

        logger.debug(
            f"Reverse geocoded: ({latitude}, {longitude}) -> city={place.city}, district={place.district}"
        )

        return place
