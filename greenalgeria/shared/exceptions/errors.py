"""カスタム例外定義"""
from typing import Any, Optional


class GreenAlgeriaError(Exception):
    """アプリケーション基底例外"""

    pass


class HTTPError(GreenAlgeriaError):
    """HTTP関連のエラー"""

    pass


class GeocodingError(GreenAlgeriaError):
    """ジオコーディングエラー"""

    pass


class StorageError(GreenAlgeriaError):
    """ストレージ関連のエラー"""

    pass


class ServiceUnavailableError(GreenAlgeriaError):
    """依存サービス（データベース）が未初期化"""

    pass


class UploadError(GreenAlgeriaError):
    """画像アップロードのエラー"""

    def __init__(self, reason: str, message: Optional[str] = None) -> None:
        """
        Args:
            reason: 機械可読な理由コード（例: invalid_file_type）
            message: 人間向けのメッセージ
        """
        super().__init__(message or reason)
        self.reason = reason


class ValidationError(GreenAlgeriaError):
    """バリデーションエラー"""

    def __init__(
        self,
        reason: str,
        message: Optional[str] = None,
        details: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        """
        Args:
            reason: 機械可読な理由コード（例: empty_payload）
            message: 人間向けのメッセージ
            details: フィールド単位の違反リスト
        """
        super().__init__(message or reason)
        self.reason = reason
        self.details = details or []
