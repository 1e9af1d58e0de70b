"""画像アップロード機能のドメインモデル"""
import random
import time
from dataclasses import dataclass
from typing import Protocol

# 受け付けるMIMEタイプ → 保存時の拡張子
ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass
class StoredImage:
    """保存済み画像"""

    filename: str  # 保存名（例: 1700000000000-123456789.png）
    url: str  # 公開URL
    content_type: str
    size: int  # バイト数


class ImageStorage(Protocol):
    """画像の保存先インターフェース"""

    def save(self, filename: str, data: bytes, content_type: str) -> StoredImage: ...


def generate_filename(extension: str) -> str:
    """
    衝突しにくい保存名を生成

    Args:
        extension: "." から始まる拡張子

    Returns:
        str: "<エポックミリ秒>-<乱数>.<拡張子>" 形式のファイル名
    """
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 999_999_999)}"
    return f"{unique_suffix}{extension}"
