"""投稿写真の移行ジョブ（インラインBase64 → 画像URL）"""

import base64
import binascii
import mimetypes
import re
from typing import Any, Callable, Optional

from tqdm import tqdm

from ....shared.exceptions.errors import StorageError
from ....shared.logging.config import get_logger
from ....shared.utils.datetime_utils import now_utc
from ...storage.repositories.contribution_repository import ContributionRepository
from ...uploads.domain.models import ALLOWED_CONTENT_TYPES, ImageStorage, generate_filename

logger = get_logger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(image/[\w.+-]+);base64,(.*)$", re.DOTALL)


def parse_data_url(value: Any) -> Optional[tuple[str, bytes]]:
    """
    data URL をMIMEタイプと画像データに分解

    Args:
        value: photo フィールドの値

    Returns:
        Optional[tuple[str, bytes]]: (MIMEタイプ, データ)。data URLでない場合はNone

    Raises:
        ValueError: Base64として解釈できない場合
    """
    if not isinstance(value, str):
        return None

    match = DATA_URL_PATTERN.match(value.strip())
    if not match:
        return None

    content_type = match.group(1).lower()
    try:
        data = base64.b64decode(match.group(2), validate=False)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e

    return content_type, data


def _extension_for(content_type: str) -> str:
    return ALLOWED_CONTENT_TYPES.get(content_type) or mimetypes.guess_extension(content_type) or ".img"


class ImageMigrationJob:
    """
    写真をドキュメント内のBase64から画像ストレージに移し、URLに書き換えるジョブ

    書き換えた投稿には migratedAt と originalFormat（元のMIMEタイプ）を記録する。
    """

    def __init__(
        self,
        repository: ContributionRepository,
        storage: ImageStorage,
        photo_field: str = "photo",
        show_progress: bool = True,
        clock: Callable[[], Any] = now_utc,
    ) -> None:
        """
        Args:
            repository: 投稿リポジトリ
            storage: 画像の保存先
            photo_field: 写真を格納しているフィールド名
            show_progress: プログレスバーを表示するか
            clock: 現在時刻を返す関数
        """
        self.repository = repository
        self.storage = storage
        self.photo_field = photo_field
        self.show_progress = show_progress
        self.clock = clock

    def execute(self, limit: Optional[int] = None, dry_run: bool = False) -> dict[str, int]:
        """
        移行を実行

        Args:
            limit: 処理する投稿数の上限
            dry_run: Trueの場合は対象件数のみ数え、保存も更新も行わない

        Returns:
            dict[str, int]: 実行結果（移行数、失敗数、スキップ数、対象数）
        """
        targets = [
            (contribution_id, data[self.photo_field])
            for contribution_id, data in self.repository.iter_all()
            if isinstance(data.get(self.photo_field), str)
            and data[self.photo_field].lstrip().startswith("data:image/")
        ]
        if limit is not None:
            targets = targets[:limit]

        logger.info(f"Image migration: {len(targets)} inline photos found (dry_run={dry_run})")

        migrated_count = 0
        failure_count = 0

        if not dry_run:
            iterator = tqdm(targets, desc="image migration") if self.show_progress else targets

            for contribution_id, photo in iterator:
                if self._migrate_one(contribution_id, photo):
                    migrated_count += 1
                else:
                    failure_count += 1

        result = {
            "migrated": migrated_count,
            "failure": failure_count,
            "skipped": len(targets) - migrated_count - failure_count,
            "total": len(targets),
        }

        logger.info(f"Image migration completed: {migrated_count} migrated, {failure_count} failure")

        return result

    def _migrate_one(self, contribution_id: str, photo: str) -> bool:
        """1件の写真を移行（成功時True）"""
        try:
            parsed = parse_data_url(photo)
        except ValueError as e:
            logger.warning(f"Contribution {contribution_id}: {e}")
            return False

        if parsed is None:
            logger.warning(f"Contribution {contribution_id}: photo is not a base64 data URL")
            return False

        content_type, data = parsed
        if not data:
            logger.warning(f"Contribution {contribution_id}: photo data is empty")
            return False

        try:
            stored = self.storage.save(generate_filename(_extension_for(content_type)), data, content_type)
            self.repository.update(
                contribution_id,
                {
                    self.photo_field: stored.url,
                    "migratedAt": self.clock(),
                    "originalFormat": content_type,
                },
            )
        except StorageError as e:
            logger.error(f"Failed to migrate photo of {contribution_id}: {e}")
            return False

        logger.debug(f"Photo of {contribution_id} migrated to {stored.url}")
        return True
