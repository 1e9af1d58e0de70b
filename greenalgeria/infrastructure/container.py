"""依存オブジェクトの組み立て"""
import os
from dataclasses import dataclass
from typing import Optional

from ..features.contributions.services.contribution_service import ContributionService
from ..features.geocoding.providers.geocode_cache import GeocodeCache
from ..features.geocoding.providers.nominatim_geocoder import NominatimGeocoder
from ..features.geocoding.services.geocoding_service import GeocodingService
from ..features.storage.clients.firestore_client import FirestoreClient
from ..features.storage.repositories.contribution_repository import ContributionRepository
from ..features.uploads.domain.models import ImageStorage
from ..features.uploads.providers.gcs_storage import GcsImageStorage
from ..features.uploads.providers.local_storage import LocalImageStorage
from ..features.uploads.services.upload_service import UploadService
from ..shared.exceptions.errors import StorageError
from ..shared.http.client import HTTPClient
from ..shared.http.rate_limiter import RateLimiter
from ..shared.logging.config import get_logger
from .config.settings import Settings

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """
    起動時に1度だけ組み立てる依存オブジェクト

    キャッシュとペーシング状態はここで生成し、各サービスに参照として渡す。
    Firestoreの初期化に失敗した場合、repository と contribution_service は None になる。
    """

    settings: Settings
    geocoding_service: GeocodingService
    upload_service: UploadService
    repository: Optional[ContributionRepository] = None
    contribution_service: Optional[ContributionService] = None
    http_client: Optional[HTTPClient] = None

    @property
    def database_ready(self) -> bool:
        """データベースが利用可能か"""
        return self.contribution_service is not None

    @classmethod
    def build(cls, settings: Settings) -> "ServiceContainer":
        """
        設定から依存オブジェクトを組み立て

        Args:
            settings: アプリケーション設定

        Returns:
            ServiceContainer: 組み立て結果
        """
        http_client = HTTPClient(
            timeout=settings.nominatim_timeout_seconds,
            max_retries=0,
            user_agent=settings.nominatim_ua,
            accept_language=settings.nominatim_accept_language,
        )
        geocoding_service = GeocodingService(
            geocoder=NominatimGeocoder(http_client, base_url=settings.nominatim_url),
            cache=GeocodeCache(
                ttl_seconds=settings.geo_cache_ttl_seconds,
                key_precision=settings.geo_cache_precision,
                max_entries=settings.geo_cache_max_entries,
            ),
            rate_limiter=RateLimiter(min_gap_ms=settings.nominatim_min_gap_ms),
        )

        upload_service = UploadService(
            storage=create_image_storage(settings, "uploads", settings.uploads_dir),
            max_bytes=settings.upload_max_bytes,
        )

        repository = create_repository(settings)
        contribution_service = None
        if repository is not None:
            contribution_service = ContributionService(
                repository=repository,
                geocoding_service=geocoding_service if settings.geocoding_enabled else None,
                round_precision=settings.geo_round_precision,
            )

        return cls(
            settings=settings,
            geocoding_service=geocoding_service,
            upload_service=upload_service,
            repository=repository,
            contribution_service=contribution_service,
            http_client=http_client,
        )

    def close(self) -> None:
        """保持しているHTTPセッションをクローズ"""
        if self.http_client is not None:
            self.http_client.close()


def create_repository(settings: Settings) -> Optional[ContributionRepository]:
    """
    Firestoreに接続して投稿リポジトリを作成

    Returns:
        Optional[ContributionRepository]: 接続できない場合はNone
    """
    # Firestoreエミュレータの設定を環境変数に反映
    if settings.firestore_emulator_host:
        os.environ["FIRESTORE_EMULATOR_HOST"] = settings.firestore_emulator_host

    try:
        firestore_client = FirestoreClient(
            project_id=settings.gcp_project_id,
            database_id=settings.firestore_database_id,
        )
    except StorageError as e:
        logger.error(f"Database unavailable, contributions API disabled: {e}")
        return None

    return ContributionRepository(
        firestore_client, collection_name=settings.firestore_contributions_collection
    )


def create_image_storage(settings: Settings, kind: str, local_dir: str) -> ImageStorage:
    """
    画像の保存先を作成（バケット設定があればCloud Storage、なければローカル）

    Args:
        settings: アプリケーション設定
        kind: 用途（uploads / static）。URLパスとオブジェクト名に使う
        local_dir: ローカル保存時のディレクトリ

    Returns:
        ImageStorage: 保存先
    """
    if settings.gcs_bucket_name:
        try:
            return GcsImageStorage(
                bucket_name=settings.gcs_bucket_name,
                prefix=f"{settings.gcs_upload_prefix}{kind}/",
                project_id=settings.gcp_project_id,
            )
        except StorageError as e:
            logger.error(f"Cloud Storage unavailable, storing {kind} images locally: {e}")
    else:
        logger.warning(f"GCS_BUCKET_NAME not set, storing {kind} images locally (ephemeral on PaaS)")

    return LocalImageStorage(local_dir, public_base_url=f"{settings.base_url}/{kind}")
