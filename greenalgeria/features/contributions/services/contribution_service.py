"""植樹投稿サービス（受付・一覧）"""

from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import now_utc
from ...geocoding.domain.coordinates import (
    DEFAULT_ROUND_PRECISION,
    build_location,
    normalize,
)
from ...geocoding.services.geocoding_service import GeocodingService
from ..domain.validation import validate_payload

logger = get_logger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500

# クライアントから受け取っても保存しないフィールド（サーバー側で採番・設定）
SERVER_MANAGED_FIELDS = (
    "_id",
    "city",
    "district",
    "createdAt",
    "geocodedAt",
    "migratedAt",
    "originalFormat",
)


class ContributionStore(Protocol):
    """投稿の永続化インターフェース"""

    def insert(self, contribution: dict[str, Any]) -> str: ...

    def find_recent(self, limit: int) -> list[dict[str, Any]]: ...


def clamp_limit(raw: Any) -> int:
    """
    一覧取得件数を [1, MAX_LIMIT] に丸める

    未指定・整数として解釈できない値・0 は DEFAULT_LIMIT とする。

    Args:
        raw: リクエストの limit パラメータ

    Returns:
        int: 取得件数
    """
    if raw is None or isinstance(raw, bool):
        return DEFAULT_LIMIT

    try:
        limit = int(str(raw).strip())
    except ValueError:
        return DEFAULT_LIMIT

    if limit == 0:
        return DEFAULT_LIMIT

    return max(1, min(limit, MAX_LIMIT))


class ContributionService:
    """
    投稿の受付と一覧取得

    受付: 検証 → 座標正規化 → location生成 → 逆ジオコーディング（ベストエフォート）→ 保存
    """

    def __init__(
        self,
        repository: ContributionStore,
        geocoding_service: Optional[GeocodingService] = None,
        round_precision: int = DEFAULT_ROUND_PRECISION,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        """
        Args:
            repository: 投稿リポジトリ
            geocoding_service: 逆ジオコーディングサービス（Noneの場合はエンリッチをスキップ）
            round_precision: 保存する座標の小数点以下桁数
            clock: 現在時刻を返す関数
        """
        self.repository = repository
        self.geocoding_service = geocoding_service
        self.round_precision = round_precision
        self.clock = clock

        logger.info(
            f"ContributionService initialized: geocoding={geocoding_service is not None}, "
            f"precision={round_precision}"
        )

    def submit(self, payload: Any) -> str:
        """
        投稿を受け付けて保存

        Args:
            payload: リクエストボディ（lat, lng と任意の追加フィールド）

        Returns:
            str: 保存された投稿のID

        Raises:
            ValidationError: ペイロードが不正な場合（保存は行わない）
            StorageError: 保存に失敗した場合
        """
        raw_lat, raw_lng = validate_payload(payload)

        logger.debug(f"Contribution received with fields: {sorted(payload)}")

        record = {
            key: value for key, value in payload.items() if key not in SERVER_MANAGED_FIELDS
        }

        lat, lng = normalize(raw_lat, raw_lng, self.round_precision)
        record["lat"] = lat
        record["lng"] = lng
        record["location"] = build_location(lat, lng)

        self._enrich(record, lat, lng)

        record["createdAt"] = self.clock()

        contribution_id = self.repository.insert(record)
        logger.info(f"Contribution inserted: {contribution_id} at ({lat}, {lng})")

        return contribution_id

    def list_recent(self, limit: Any = None) -> list[dict[str, Any]]:
        """
        新しい順に投稿を取得

        Args:
            limit: 取得件数（[1, 500] に丸める、未指定は100）

        Returns:
            list[dict[str, Any]]: 投稿のリスト
        """
        return self.repository.find_recent(clamp_limit(limit))

    def _enrich(self, record: dict[str, Any], lat: float, lng: float) -> None:
        """
        地名を付与（1つ以上取得できた場合のみ geocodedAt を設定）

        Args:
            record: 保存予定の投稿
            lat: 正規化済みの緯度
            lng: 正規化済みの経度
        """
        if self.geocoding_service is None:
            return

        place = self.geocoding_service.resolve(lat, lng)
        if place.is_empty:
            logger.info(f"Contribution at ({lat}, {lng}) saved without place names")
            return

        if place.city is not None:
            record["city"] = place.city
        if place.district is not None:
            record["district"] = place.district
        record["geocodedAt"] = self.clock()
