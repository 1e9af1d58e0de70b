"""アプリケーション設定（Pydantic Settings）"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """アプリケーション設定"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = Field(
        default="greenalgeria-backend",
        description="プロジェクト名",
    )
    environment: str = Field(
        default="development",
        description="環境 (development, staging, production)",
    )
    base_url: str = Field(
        default="http://localhost:4000",
        description="公開URL（アップロード画像のURL生成に使用）",
    )

    # GCP
    gcp_project_id: Optional[str] = Field(
        default=None,
        description="GCPプロジェクトID（未設定の場合は実行環境の既定値）",
    )

    # Firestore
    firestore_database_id: str = Field(
        default="(default)",
        description="FirestoreデータベースID",
    )
    firestore_emulator_host: Optional[str] = Field(
        default=None,
        description="Firestoreエミュレータのホスト（例: localhost:8080）。設定された場合はエミュレータに接続",
    )
    firestore_contributions_collection: str = Field(
        default="contributions",
        description="投稿コレクション名",
    )

    # Geocoding (Nominatim)
    geocoding_enabled: bool = Field(
        default=True,
        description="投稿時の逆ジオコーディングを有効にするか",
    )
    nominatim_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        description="Nominatim reverse エンドポイント",
    )
    nominatim_ua: str = Field(
        default="GreenAlgeria/1.0 (+https://greenalgeria.onrender.com)",
        description="Nominatimに送るUser-Agent（利用規約上必須）",
    )
    nominatim_accept_language: str = Field(
        default="ar,en",
        description="Nominatimに送るAccept-Language",
    )
    nominatim_min_gap_ms: int = Field(
        default=500,
        ge=0,
        description="Nominatim呼び出し間の最小間隔（ミリ秒）",
    )
    nominatim_timeout_ms: int = Field(
        default=8000,
        gt=0,
        description="Nominatimリクエストのタイムアウト（ミリ秒）",
    )
    geo_round_precision: int = Field(
        default=4,
        ge=0,
        le=10,
        description="保存する座標の小数点以下桁数（4桁で約11m）",
    )
    geo_cache_precision: int = Field(
        default=3,
        ge=0,
        le=10,
        description="キャッシュキーに使う座標の小数点以下桁数（3桁で約111m）",
    )
    geo_cache_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="ジオコーディングキャッシュの有効期間（秒）",
    )
    geo_cache_max_entries: int = Field(
        default=100_000,
        gt=0,
        description="ジオコーディングキャッシュの最大件数",
    )

    # Uploads
    gcs_bucket_name: Optional[str] = Field(
        default=None,
        description="Cloud Storageバケット名（未設定の場合はローカル保存）",
    )
    gcs_upload_prefix: str = Field(
        default="greenalgeria/",
        description="アップロード画像のオブジェクト名プレフィックス",
    )
    uploads_dir: str = Field(
        default="uploads",
        description="ローカル保存時のアップロードディレクトリ",
    )
    static_dir: str = Field(
        default="static",
        description="移行済み画像を置く静的ファイルディレクトリ",
    )
    upload_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        gt=0,
        description="アップロード画像の最大サイズ（バイト）",
    )

    # Request limits
    rate_limit_enabled: bool = Field(
        default=True,
        description="クライアントごとのリクエスト数制限を有効にするか",
    )

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="ブラウザからのクロスオリジン呼び出しを許可するオリジン（JSON配列で指定）",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    gcp_logging_enabled: bool = Field(
        default=False,
        description="Cloud Loggingを有効にするか",
    )

    # Server
    port: int = Field(
        default=4000,
        description="HTTPサーバーのポート番号",
    )

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def nominatim_timeout_seconds(self) -> float:
        """Nominatimタイムアウト（秒）"""
        return self.nominatim_timeout_ms / 1000.0
