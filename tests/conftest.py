"""テスト共通のフェイクとフィクスチャ"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import pytest

from greenalgeria.features.geocoding.domain.models import PlaceNames
from greenalgeria.features.geocoding.providers.geocode_cache import GeocodeCache
from greenalgeria.features.geocoding.services.geocoding_service import GeocodingService
from greenalgeria.infrastructure.config.settings import Settings
from greenalgeria.shared.http.rate_limiter import RateLimiter


class FakeClock:
    """手動で進める時計（sleep を呼ぶと時間が進む）"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, amount: float) -> None:
        self.now += amount

    def sleep(self, amount: float) -> None:
        self.sleeps.append(amount)
        self.now += amount


class StubGeocoder:
    """外部APIの代わりに固定の結果（または例外）を返す"""

    def __init__(
        self, result: Optional[PlaceNames] = None, error: Optional[Exception] = None
    ) -> None:
        self.result = result if result is not None else PlaceNames(city="Alger", district="Hydra")
        self.error = error
        self.calls: list[tuple[float, float]] = []

    def reverse_geocode(self, latitude: float, longitude: float) -> PlaceNames:
        self.calls.append((latitude, longitude))
        if self.error is not None:
            raise self.error
        return self.result


class InMemoryContributionRepository:
    """Firestoreの代わりに辞書へ保存するリポジトリ"""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.fail_with: Optional[Exception] = None
        self._counter = 0

    def insert(self, contribution: dict[str, Any]) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self._counter += 1
        document_id = f"doc{self._counter:04d}"
        self.documents[document_id] = dict(contribution)
        return document_id

    def find_recent(self, limit: int) -> list[dict[str, Any]]:
        ordered = sorted(
            self.documents.items(), key=lambda item: item[1]["createdAt"], reverse=True
        )
        return [{"_id": doc_id, **data} for doc_id, data in ordered[:limit]]

    def iter_all(self) -> Any:
        return iter(list(self.documents.items()))

    def update(self, contribution_id: str, updates: dict[str, Any]) -> None:
        self.documents[contribution_id].update(updates)


class TickingClock:
    """呼ぶたびに1秒進むUTC時計（作成順の並びを確定させる）"""

    def __init__(self) -> None:
        self.current = datetime(2024, 3, 21, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticking_clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def stub_geocoder() -> StubGeocoder:
    return StubGeocoder()


@pytest.fixture
def make_stub_geocoder() -> Callable[..., StubGeocoder]:
    return StubGeocoder


@pytest.fixture
def repository() -> InMemoryContributionRepository:
    return InMemoryContributionRepository()


@pytest.fixture
def make_geocoding_service(fake_clock: FakeClock) -> Callable[..., GeocodingService]:
    """フェイク時計を使う GeocodingService を作成する関数"""

    def factory(geocoder: Any, min_gap_ms: float = 500) -> GeocodingService:
        return GeocodingService(
            geocoder=geocoder,
            cache=GeocodeCache(ttl_seconds=3600, key_precision=3, timer=fake_clock),
            rate_limiter=RateLimiter(
                min_gap_ms=min_gap_ms, clock=fake_clock, sleep=fake_clock.sleep
            ),
        )

    return factory


@pytest.fixture
def settings(tmp_path: Any) -> Settings:
    return Settings(
        _env_file=None,
        base_url="http://testserver/",
        uploads_dir=str(tmp_path / "uploads"),
        static_dir=str(tmp_path / "static"),
        rate_limit_enabled=False,
    )
