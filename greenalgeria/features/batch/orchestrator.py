"""バッチオーケストレーター"""

import time
from typing import Optional

from ...infrastructure.config.settings import Settings
from ...infrastructure.container import ServiceContainer, create_image_storage
from ...shared.exceptions.errors import ServiceUnavailableError
from ...shared.logging.config import get_logger
from ...shared.utils.datetime_utils import format_duration
from .jobs.geocoding_backfill_job import GeocodingBackfillJob
from .jobs.image_migration_job import ImageMigrationJob

logger = get_logger(__name__)

JOB_BACKFILL_GEOCODING = "backfill-geocoding"
JOB_MIGRATE_IMAGES = "migrate-images"
JOBS = (JOB_BACKFILL_GEOCODING, JOB_MIGRATE_IMAGES)


class BatchOrchestrator:
    """
    バッチオーケストレーター

    ServiceContainer の依存オブジェクトを使ってメンテナンスジョブを実行する
    """

    def __init__(
        self, settings: Settings, container: Optional[ServiceContainer] = None
    ) -> None:
        """
        Args:
            settings: アプリケーション設定
            container: 組み立て済みの依存オブジェクト（Noneの場合は設定から作成）
        """
        self.settings = settings
        self.container = container or ServiceContainer.build(settings)

        if self.container.repository is None:
            raise ServiceUnavailableError("Database is not available, batch jobs cannot run")

        self.repository = self.container.repository

        logger.info("BatchOrchestrator initialized")

    def run(self, job_name: str, limit: Optional[int] = None, dry_run: bool = False) -> dict[str, int]:
        """
        ジョブ名を指定して実行

        Args:
            job_name: backfill-geocoding / migrate-images
            limit: 処理件数の上限
            dry_run: 対象件数のみ数えるか

        Returns:
            dict[str, int]: ジョブの実行結果
        """
        started = time.monotonic()

        if job_name == JOB_BACKFILL_GEOCODING:
            result = self.run_geocoding_backfill(limit=limit, dry_run=dry_run)
        elif job_name == JOB_MIGRATE_IMAGES:
            result = self.run_image_migration(limit=limit, dry_run=dry_run)
        else:
            raise ValueError(f"Unknown job: {job_name} (expected one of {', '.join(JOBS)})")

        logger.info(f"Job {job_name} finished in {format_duration(time.monotonic() - started)}: {result}")
        return result

    def run_geocoding_backfill(self, limit: Optional[int] = None, dry_run: bool = False) -> dict[str, int]:
        """地名が付与されていない投稿を逆ジオコーディング"""
        logger.info("Starting geocoding backfill job")

        job = GeocodingBackfillJob(
            repository=self.repository,
            geocoding_service=self.container.geocoding_service,
        )
        return job.execute(limit=limit, dry_run=dry_run)

    def run_image_migration(self, limit: Optional[int] = None, dry_run: bool = False) -> dict[str, int]:
        """インラインBase64の写真を画像ストレージへ移行"""
        logger.info("Starting image migration job")

        job = ImageMigrationJob(
            repository=self.repository,
            storage=create_image_storage(self.settings, "static", self.settings.static_dir),
        )
        return job.execute(limit=limit, dry_run=dry_run)
