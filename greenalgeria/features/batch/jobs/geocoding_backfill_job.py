"""逆ジオコーディングのバックフィルジョブ"""

from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from tqdm import tqdm

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import now_utc
from ...contributions.domain.validation import CoordinatesInput
from ...geocoding.services.geocoding_service import GeocodingService
from ...storage.repositories.contribution_repository import ContributionRepository

logger = get_logger(__name__)


class GeocodingBackfillJob:
    """
    地名が付与されていない投稿を後から逆ジオコーディングするジョブ

    投稿受付時と同じ GeocodingService を使うため、キャッシュとペーシングが適用される。
    """

    def __init__(
        self,
        repository: ContributionRepository,
        geocoding_service: GeocodingService,
        show_progress: bool = True,
        clock: Callable[[], Any] = now_utc,
    ) -> None:
        """
        Args:
            repository: 投稿リポジトリ
            geocoding_service: 逆ジオコーディングサービス
            show_progress: プログレスバーを表示するか
            clock: 現在時刻を返す関数
        """
        self.repository = repository
        self.geocoding_service = geocoding_service
        self.show_progress = show_progress
        self.clock = clock

    def execute(self, limit: Optional[int] = None, dry_run: bool = False) -> dict[str, int]:
        """
        バックフィルを実行

        Args:
            limit: 処理する投稿数の上限
            dry_run: Trueの場合は対象件数のみ数え、外部APIも更新も行わない

        Returns:
            dict[str, int]: 実行結果（更新数、失敗数、スキップ数、対象数）
        """
        targets = self._find_targets(limit)
        logger.info(f"Geocoding backfill: {len(targets)} contributions to enrich (dry_run={dry_run})")

        updated_count = 0
        failure_count = 0

        if not dry_run:
            iterator = tqdm(targets, desc="geocoding backfill") if self.show_progress else targets

            for contribution_id, lat, lng in iterator:
                place = self.geocoding_service.resolve(lat, lng)
                if place.is_empty:
                    failure_count += 1
                    continue

                updates: dict[str, Any] = {"geocodedAt": self.clock()}
                if place.city is not None:
                    updates["city"] = place.city
                if place.district is not None:
                    updates["district"] = place.district

                try:
                    self.repository.update(contribution_id, updates)
                    updated_count += 1
                except StorageError as e:
                    logger.error(f"Failed to save place names for {contribution_id}: {e}")
                    failure_count += 1

        result = {
            "updated": updated_count,
            "failure": failure_count,
            "skipped": len(targets) - updated_count - failure_count,
            "total": len(targets),
        }

        logger.info(
            f"Geocoding backfill completed: {updated_count} updated, {failure_count} failure"
        )

        return result

    def _find_targets(self, limit: Optional[int]) -> list[tuple[str, float, float]]:
        """geocodedAt がなく、座標が有効な投稿を抽出"""
        targets = []
        for contribution_id, data in self.repository.iter_all():
            if data.get("geocodedAt") is not None:
                continue

            try:
                coordinates = CoordinatesInput.model_validate(data)
            except PydanticValidationError:
                logger.warning(f"Contribution {contribution_id} has invalid coordinates, skipping")
                continue

            targets.append((contribution_id, coordinates.lat, coordinates.lng))
            if limit is not None and len(targets) >= limit:
                break

        return targets
