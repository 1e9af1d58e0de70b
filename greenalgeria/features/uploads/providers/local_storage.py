"""ローカルディスクへの画像保存"""
from pathlib import Path
from typing import Union

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ..domain.models import StoredImage

logger = get_logger(__name__)


class LocalImageStorage:
    """
    ローカルディスクに画像を保存

    保存先ディレクトリはサーバーが静的ファイルとして公開する（/uploads, /static）。
    """

    def __init__(self, directory: Union[str, Path], public_base_url: str) -> None:
        """
        Args:
            directory: 保存先ディレクトリ（存在しない場合は作成）
            public_base_url: 公開URLのベース（例: http://localhost:4000/uploads）
        """
        self.directory = Path(directory)
        self.public_base_url = public_base_url.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalImageStorage initialized: {self.directory}")

    def save(self, filename: str, data: bytes, content_type: str) -> StoredImage:
        """
        画像を書き込み

        Args:
            filename: 保存名
            data: 画像データ
            content_type: MIMEタイプ

        Returns:
            StoredImage: 保存結果

        Raises:
            StorageError: 書き込みに失敗した場合
        """
        path = self.directory / filename
        try:
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write image {path}: {e}") from e

        logger.info(f"Image saved locally: {path} ({len(data)} bytes)")
        return StoredImage(
            filename=filename,
            url=f"{self.public_base_url}/{filename}",
            content_type=content_type,
            size=len(data),
        )
