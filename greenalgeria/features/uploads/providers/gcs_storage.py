"""Cloud Storageへの画像保存"""
from typing import Optional

from google.cloud import storage

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ..domain.models import StoredImage

logger = get_logger(__name__)


class GcsImageStorage:
    """Cloud Storageバケットに画像を保存"""

    def __init__(self, bucket_name: str, prefix: str = "", project_id: Optional[str] = None) -> None:
        """
        Args:
            bucket_name: バケット名
            prefix: オブジェクト名のプレフィックス（例: greenalgeria/）
            project_id: GCPプロジェクトID
        """
        self.bucket_name = bucket_name
        self.prefix = prefix

        try:
            self.client = storage.Client(project=project_id)
            self.bucket = self.client.bucket(bucket_name)
            logger.info(f"GcsImageStorage initialized: gs://{bucket_name}/{prefix}")
        except Exception as e:
            raise StorageError(f"Failed to initialize Cloud Storage client: {e}") from e

    def save(self, filename: str, data: bytes, content_type: str) -> StoredImage:
        """
        画像をアップロード

        Args:
            filename: 保存名
            data: 画像データ
            content_type: MIMEタイプ

        Returns:
            StoredImage: 保存結果（公開URL）

        Raises:
            StorageError: アップロードに失敗した場合
        """
        blob_name = f"{self.prefix}{filename}"
        try:
            blob = self.bucket.blob(blob_name)
            blob.upload_from_string(data, content_type=content_type)
        except Exception as e:
            raise StorageError(f"Failed to upload gs://{self.bucket_name}/{blob_name}: {e}") from e

        logger.info(f"Image uploaded: gs://{self.bucket_name}/{blob_name} ({len(data)} bytes)")
        return StoredImage(
            filename=filename,
            url=blob.public_url,
            content_type=content_type,
            size=len(data),
        )
