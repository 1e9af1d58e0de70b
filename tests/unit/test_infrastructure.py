"""設定・依存オブジェクトの組み立て・リポジトリ・CLIのテスト"""
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from pydantic import ValidationError as PydanticValidationError

from greenalgeria import entrypoint
from greenalgeria.features.storage.repositories.contribution_repository import (
    ContributionRepository,
)
from greenalgeria.features.uploads.providers.local_storage import LocalImageStorage
from greenalgeria.infrastructure import container as container_module
from greenalgeria.infrastructure.config.settings import Settings
from greenalgeria.infrastructure.container import ServiceContainer
from greenalgeria.shared.exceptions.errors import StorageError
from greenalgeria.shared.utils.datetime_utils import format_duration, to_iso


class FakeFirestoreClient:
    """FirestoreClient と同じメソッドを持つメモリ内実装"""

    def __init__(self, project_id: Optional[str] = None, database_id: str = "(default)") -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.queries: list[dict[str, Any]] = []

    def add_document(self, collection_path: str, data: dict[str, Any]) -> str:
        documents = self.collections.setdefault(collection_path, {})
        document_id = f"auto{len(documents) + 1}"
        documents[document_id] = dict(data)
        return document_id

    def query_documents(self, collection_path: str, **kwargs: Any) -> list[tuple[str, dict[str, Any]]]:
        self.queries.append({"collection": collection_path, **kwargs})
        documents = self.collections.get(collection_path, {})
        ordered = sorted(
            documents.items(),
            key=lambda item: item[1][kwargs["order_by"]],
            reverse=kwargs["descending"],
        )
        return ordered[: kwargs["limit"]]

    def stream_documents(self, collection_path: str) -> Any:
        yield from self.collections.get(collection_path, {}).items()

    def update_document(self, collection_path: str, document_id: str, updates: dict[str, Any]) -> None:
        self.collections[collection_path][document_id].update(updates)


class FailingFirestoreClient:
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        raise StorageError("Failed to initialize Firestore client: no credentials")


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """環境変数から設定を読み込む"""
    monkeypatch.setenv("NOMINATIM_MIN_GAP_MS", "1000")
    monkeypatch.setenv("GEO_CACHE_PRECISION", "2")
    monkeypatch.setenv("BASE_URL", "https://greenalgeria.onrender.com/")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://greenalgeria.onrender.com"]')

    settings = Settings(_env_file=None)

    assert settings.nominatim_min_gap_ms == 1000
    assert settings.geo_cache_precision == 2
    assert settings.base_url == "https://greenalgeria.onrender.com"
    assert settings.port == 8080
    assert settings.cors_allow_origins == ["https://greenalgeria.onrender.com"]


def test_settings_defaults() -> None:
    """既定値"""
    settings = Settings(_env_file=None)

    assert settings.nominatim_min_gap_ms == 500
    assert settings.geo_round_precision == 4
    assert settings.geo_cache_precision == 3
    assert settings.geo_cache_ttl_seconds == 3600
    assert settings.nominatim_timeout_seconds == 8.0
    assert settings.nominatim_accept_language == "ar,en"
    assert settings.cors_allow_origins == ["*"]


@pytest.mark.parametrize(
    "overrides",
    [{"nominatim_min_gap_ms": -1}, {"geo_round_precision": 11}, {"nominatim_timeout_ms": 0}],
)
def test_settings_reject_invalid_values(overrides: dict[str, Any]) -> None:
    """範囲外の設定値はエラー"""
    with pytest.raises(PydanticValidationError):
        Settings(_env_file=None, **overrides)


def test_container_without_database(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    """Firestoreに接続できない場合も起動し、投稿サービスだけ無効になる"""
    monkeypatch.setattr(container_module, "FirestoreClient", FailingFirestoreClient)

    container = ServiceContainer.build(settings)

    assert container.repository is None
    assert container.contribution_service is None
    assert not container.database_ready
    assert isinstance(container.upload_service.storage, LocalImageStorage)
    assert container.upload_service.storage.public_base_url == "http://testserver/uploads"
    container.close()


def test_container_wires_geocoding_from_settings(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    """設定値をキャッシュ・ペーシング・HTTPクライアントに反映する"""
    monkeypatch.setattr(container_module, "FirestoreClient", FakeFirestoreClient)
    app_settings = settings.model_copy(
        update={"nominatim_min_gap_ms": 750, "geo_cache_precision": 2, "nominatim_timeout_ms": 3000}
    )

    container = ServiceContainer.build(app_settings)

    geocoding_service = container.geocoding_service
    assert container.database_ready
    assert container.contribution_service.geocoding_service is geocoding_service
    assert geocoding_service.rate_limiter.min_gap_ms == 750
    assert geocoding_service.cache.key_precision == 2
    assert container.http_client.timeout == 3.0
    assert container.http_client.max_retries == 0
    container.close()


def test_container_with_geocoding_disabled(settings, monkeypatch: pytest.MonkeyPatch) -> None:
    """逆ジオコーディングを無効にすると投稿サービスに渡さない"""
    monkeypatch.setattr(container_module, "FirestoreClient", FakeFirestoreClient)

    container = ServiceContainer.build(settings.model_copy(update={"geocoding_enabled": False}))

    assert container.contribution_service.geocoding_service is None
    container.close()


def test_repository_find_recent_adds_ids() -> None:
    """作成日時の降順で問い合わせ、各投稿に _id を付ける"""
    client = FakeFirestoreClient()
    repository = ContributionRepository(client)
    first = repository.insert({"lat": 36.75, "lng": 3.04, "createdAt": 1})
    second = repository.insert({"lat": 35.69, "lng": -0.63, "createdAt": 2})

    recent = repository.find_recent(10)

    assert [item["_id"] for item in recent] == [second, first]
    assert client.queries == [
        {"collection": "contributions", "order_by": "createdAt", "descending": True, "limit": 10}
    ]


def test_repository_update_and_iterate() -> None:
    """更新と全件走査"""
    repository = ContributionRepository(FakeFirestoreClient(), collection_name="trees")
    document_id = repository.insert({"lat": 36.75, "lng": 3.04, "createdAt": 1})

    repository.update(document_id, {"city": "Alger"})

    assert list(repository.iter_all()) == [
        (document_id, {"lat": 36.75, "lng": 3.04, "createdAt": 1, "city": "Alger"})
    ]


def test_entrypoint_runs_job(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """--job 指定時はジョブを実行して0を返す"""
    monkeypatch.setattr(container_module, "FirestoreClient", FakeFirestoreClient)
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "static"))

    exit_code = entrypoint.main(
        ["--job", "backfill-geocoding", "--dry-run", "--env-file", str(tmp_path / "missing.env")]
    )

    assert exit_code == 0


def test_entrypoint_reports_failure(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """ジョブを開始できない場合は1を返す"""
    monkeypatch.setattr(container_module, "FirestoreClient", FailingFirestoreClient)
    monkeypatch.setenv("UPLOADS_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "static"))

    exit_code = entrypoint.main(["--job", "migrate-images", "--env-file", str(tmp_path / "missing.env")])

    assert exit_code == 1


def test_entrypoint_rejects_unknown_job() -> None:
    """未知のジョブ名は引数エラー"""
    with pytest.raises(SystemExit):
        entrypoint.build_parser().parse_args(["--job", "reindex"])


def test_to_iso_uses_milliseconds_and_z_suffix() -> None:
    """ISO 8601（ミリ秒、末尾Z）に変換する"""
    value = datetime(2024, 3, 21, 9, 30, 15, 123456, tzinfo=timezone.utc)

    assert to_iso(value) == "2024-03-21T09:30:15.123Z"
    assert to_iso(value.replace(tzinfo=None)) == "2024-03-21T09:30:15.123Z"


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0s"), (59.9, "59s"), (61, "1m1s"), (3600, "1h"), (5025, "1h23m45s")],
)
def test_format_duration(seconds: float, expected: str) -> None:
    """処理時間を読みやすい形式にする"""
    assert format_duration(seconds) == expected
