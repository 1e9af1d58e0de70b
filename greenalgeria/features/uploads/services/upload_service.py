"""画像アップロードサービス"""
from typing import Optional

from ....shared.exceptions.errors import UploadError
from ....shared.logging.config import get_logger
from ..domain.models import ALLOWED_CONTENT_TYPES, ImageStorage, StoredImage, generate_filename

logger = get_logger(__name__)

NO_FILE = "no_file"
INVALID_FILE_TYPE = "invalid_file_type"
FILE_TOO_LARGE = "file_too_large"


class UploadService:
    """投稿写真のアップロード（種類・サイズを検証して保存）"""

    def __init__(self, storage: ImageStorage, max_bytes: int = 5 * 1024 * 1024) -> None:
        """
        Args:
            storage: 画像の保存先
            max_bytes: 最大サイズ（バイト）
        """
        self.storage = storage
        self.max_bytes = max_bytes
        logger.info(f"UploadService initialized: max_bytes={max_bytes}")

    def upload(self, content_type: Optional[str], data: Optional[bytes]) -> StoredImage:
        """
        画像を検証して保存

        Args:
            content_type: アップロードされたファイルのMIMEタイプ
            data: ファイル内容（max_bytes + 1 バイトまで読めば判定できる）

        Returns:
            StoredImage: 保存結果

        Raises:
            UploadError: ファイルなし・未対応の種類・サイズ超過の場合
            StorageError: 保存に失敗した場合
        """
        if not data:
            raise UploadError(NO_FILE, "No file provided")

        extension = ALLOWED_CONTENT_TYPES.get((content_type or "").lower())
        if extension is None:
            raise UploadError(INVALID_FILE_TYPE, f"File type not allowed: {content_type}")

        if len(data) > self.max_bytes:
            raise UploadError(
                FILE_TOO_LARGE, f"File too large (max {self.max_bytes // (1024 * 1024)}MB)"
            )

        return self.storage.save(generate_filename(extension), data, content_type.lower())
