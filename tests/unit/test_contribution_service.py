"""投稿受付・一覧サービスのテスト"""
import math
from typing import Any

import pytest

from greenalgeria.features.contributions.domain.validation import (
    EMPTY_PAYLOAD,
    INVALID_COORDINATES,
    INVALID_PAYLOAD,
    validate_payload,
)
from greenalgeria.features.contributions.services.contribution_service import (
    DEFAULT_LIMIT,
    MAX_LIMIT,
    ContributionService,
    clamp_limit,
)
from greenalgeria.features.geocoding.domain.models import PlaceNames
from greenalgeria.shared.exceptions.errors import GeocodingError, StorageError, ValidationError


@pytest.fixture
def make_service(repository, make_geocoding_service, ticking_clock):
    """スタブのジオコーダーを使う ContributionService を作成する関数"""

    def factory(geocoder: Any = None) -> ContributionService:
        geocoding_service = make_geocoding_service(geocoder) if geocoder is not None else None
        return ContributionService(
            repository=repository, geocoding_service=geocoding_service, clock=ticking_clock
        )

    return factory


@pytest.mark.parametrize("payload", [None, {}, [], ""])
def test_empty_payload_is_rejected(payload: Any) -> None:
    """空のペイロードは empty_payload"""
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(payload)

    assert exc_info.value.reason == EMPTY_PAYLOAD


@pytest.mark.parametrize("payload", [[{"lat": 1, "lng": 2}], "36.75,3.04", 42])
def test_non_object_payload_is_rejected(payload: Any) -> None:
    """オブジェクト以外のペイロードは invalid_payload"""
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(payload)

    assert exc_info.value.reason == INVALID_PAYLOAD


@pytest.mark.parametrize(
    "payload,field",
    [
        ({"lat": 95, "lng": 3}, "lat"),
        ({"lat": -90.5, "lng": 3}, "lat"),
        ({"lat": 36.75, "lng": 180.01}, "lng"),
        ({"lat": 36.75}, "lng"),
        ({"lng": 3.04}, "lat"),
        ({"lat": "abc", "lng": 3.04}, "lat"),
        ({"lat": True, "lng": 3.04}, "lat"),
        ({"lat": None, "lng": 3.04}, "lat"),
        ({"lat": math.nan, "lng": 3.04}, "lat"),
        ({"lat": 36.75, "lng": math.inf}, "lng"),
    ],
)
def test_invalid_coordinates_report_field(payload: dict[str, Any], field: str) -> None:
    """範囲外・欠落・非数値の座標は invalid_coordinates とフィールド名を返す"""
    with pytest.raises(ValidationError) as exc_info:
        validate_payload(payload)

    assert exc_info.value.reason == INVALID_COORDINATES
    assert field in [detail["field"] for detail in exc_info.value.details]


def test_boundary_and_numeric_string_coordinates_are_accepted() -> None:
    """境界値と数値文字列は受け付ける"""
    assert validate_payload({"lat": 90, "lng": -180}) == (90.0, -180.0)
    assert validate_payload({"lat": "36.75", "lng": "3.04"}) == (36.75, 3.04)


def test_submit_stores_normalized_enriched_record(
    make_service, stub_geocoder, repository, ticking_clock
) -> None:
    """正規化・location・地名・タイムスタンプを付与して保存する"""
    service = make_service(stub_geocoder)

    inserted_id = service.submit(
        {"lat": 36.75256, "lng": 3.04204, "species": "Pinus halepensis", "count": 3}
    )

    record = repository.documents[inserted_id]
    assert record["lat"] == 36.7526
    assert record["lng"] == 3.042
    assert record["location"] == {
        "type": "Point",
        "coordinates": [3.042, 36.7526],
        "lat": 36.7526,
        "lng": 3.042,
    }
    assert record["species"] == "Pinus halepensis"
    assert record["count"] == 3
    assert record["city"] == "Alger"
    assert record["district"] == "Hydra"
    assert record["geocodedAt"] <= record["createdAt"]
    assert record["createdAt"] == ticking_clock.current
    assert stub_geocoder.calls == [(36.7526, 3.042)]


def test_submit_without_place_names_omits_geocoding_fields(
    make_service, make_stub_geocoder, repository
) -> None:
    """地名を取得できない場合も保存し、city・district・geocodedAt は付けない"""
    service = make_service(make_stub_geocoder(error=GeocodingError("timeout")))

    inserted_id = service.submit({"lat": 36.75, "lng": 3.04})

    record = repository.documents[inserted_id]
    assert "city" not in record
    assert "district" not in record
    assert "geocodedAt" not in record
    assert "createdAt" in record


def test_submit_with_partial_place_names(make_service, make_stub_geocoder, repository) -> None:
    """一方だけ取得できた場合はそのフィールドと geocodedAt のみ付ける"""
    service = make_service(make_stub_geocoder(result=PlaceNames(city="Tipaza")))

    record = repository.documents[service.submit({"lat": 36.59, "lng": 2.44})]

    assert record["city"] == "Tipaza"
    assert "district" not in record
    assert "geocodedAt" in record


def test_submit_without_geocoding_service(make_service, repository) -> None:
    """ジオコーディング無効時は地名を付けずに保存する"""
    service = make_service()

    record = repository.documents[service.submit({"lat": 36.75, "lng": 3.04})]

    assert "city" not in record
    assert record["lat"] == 36.75


def test_submit_ignores_server_managed_fields(make_service, stub_geocoder, repository) -> None:
    """クライアントが送った _id・city・createdAt などは保存しない"""
    service = make_service(stub_geocoder)

    inserted_id = service.submit(
        {
            "lat": 36.75,
            "lng": 3.04,
            "_id": "client-id",
            "city": "Paris",
            "createdAt": "1999-01-01T00:00:00Z",
            "note": "near the school",
        }
    )

    record = repository.documents[inserted_id]
    assert inserted_id != "client-id"
    assert "_id" not in record
    assert record["city"] == "Alger"
    assert record["createdAt"] != "1999-01-01T00:00:00Z"
    assert record["note"] == "near the school"


def test_invalid_submit_does_not_call_geocoder_or_store(
    make_service, stub_geocoder, repository
) -> None:
    """検証エラー時は外部APIも保存も行わない"""
    service = make_service(stub_geocoder)

    with pytest.raises(ValidationError):
        service.submit({"lat": 95, "lng": 3})

    assert stub_geocoder.calls == []
    assert repository.documents == {}


def test_submit_propagates_storage_error(make_service, repository) -> None:
    """保存の失敗は StorageError として伝播する"""
    repository.fail_with = StorageError("Failed to add document to contributions")
    service = make_service()

    with pytest.raises(StorageError):
        service.submit({"lat": 36.75, "lng": 3.04})


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DEFAULT_LIMIT),
        ("", DEFAULT_LIMIT),
        ("abc", DEFAULT_LIMIT),
        ("2.5", DEFAULT_LIMIT),
        ("0", DEFAULT_LIMIT),
        (0, DEFAULT_LIMIT),
        ("10", 10),
        (" 25 ", 25),
        ("500", MAX_LIMIT),
        ("501", MAX_LIMIT),
        ("10000", MAX_LIMIT),
        ("-5", 1),
        ("1", 1),
    ],
)
def test_clamp_limit(raw: Any, expected: int) -> None:
    """limit は [1, 500] に丸め、未指定・不正値・0 は100"""
    assert clamp_limit(raw) == expected


def test_list_recent_returns_newest_first(make_service) -> None:
    """新しい順に、指定件数だけ返す"""
    service = make_service()
    ids = [service.submit({"lat": 36.0 + i / 10, "lng": 3.0}) for i in range(5)]

    recent = service.list_recent("3")

    assert [item["_id"] for item in recent] == list(reversed(ids))[:3]
