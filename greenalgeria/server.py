"""植樹投稿APIのHTTPサーバー（FastAPI）"""
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Body, FastAPI, File, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .features.contributions.domain.validation import INVALID_PAYLOAD
from .features.contributions.services.contribution_service import ContributionService
from .infrastructure.config.settings import Settings
from .infrastructure.container import ServiceContainer
from .shared.exceptions.errors import (
    ServiceUnavailableError,
    StorageError,
    UploadError,
    ValidationError,
)
from .shared.logging.config import get_logger, log_access
from .shared.utils.datetime_utils import now_utc, to_iso

logger = get_logger(__name__)

SERVICE_NAME = "GreenAlgeria contributions API"
SERVICE_VERSION = "1.0.0"

CONTRIBUTIONS_RATE_LIMIT = "100/15minutes"
UPLOAD_RATE_LIMIT = "30/15minutes"


def client_ip(request: Request) -> str:
    """アクセスログ用の送信元（X-Forwarded-For の先頭、なければ接続元アドレス）"""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return forwarded or get_remote_address(request)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_contribution_service(request: Request) -> ContributionService:
    """
    投稿サービスを取得

    Raises:
        ServiceUnavailableError: データベースが未初期化の場合
    """
    service = get_container(request).contribution_service
    if service is None:
        raise ServiceUnavailableError("Database is not initialized")
    return service


def create_router(limiter: Limiter) -> APIRouter:
    """
    エンドポイントを定義

    Args:
        limiter: 書き込み系エンドポイントに適用するリクエスト数制限

    Returns:
        APIRouter: ルーター
    """
    router = APIRouter()

    @router.get("/")
    def root(request: Request) -> dict[str, Any]:
        """ルートエンドポイント"""
        settings = get_container(request).settings
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "status": "running",
            "environment": settings.environment,
        }

    @router.get("/health")
    def health(request: Request) -> dict[str, Any]:
        """ヘルスチェックエンドポイント"""
        container = get_container(request)
        return {
            "status": "healthy",
            "database": "ready" if container.database_ready else "unavailable",
            "geocodeCache": container.geocoding_service.get_cache_stats(),
        }

    @router.post("/api/contributions")
    @limiter.limit(CONTRIBUTIONS_RATE_LIMIT)
    def create_contribution(
        request: Request, payload: Optional[Any] = Body(None)
    ) -> dict[str, Any]:
        """
        植樹投稿を登録

        Args:
            request: リクエスト
            payload: {lat, lng, ...任意のフィールド}

        Returns:
            dict[str, Any]: {success: true, insertedId}
        """
        service = get_contribution_service(request)
        inserted_id = service.submit(payload)
        return {"success": True, "insertedId": inserted_id}

    @router.get("/api/contributions")
    def list_contributions(
        request: Request, limit: Optional[str] = Query(None)
    ) -> list[dict[str, Any]]:
        """
        新しい順に投稿を取得

        Args:
            request: リクエスト
            limit: 取得件数（1〜500、既定100）

        Returns:
            list[dict[str, Any]]: 投稿のリスト
        """
        service = get_contribution_service(request)
        return service.list_recent(limit)

    @router.post("/api/upload")
    @limiter.limit(UPLOAD_RATE_LIMIT)
    def upload_image(
        request: Request, image: Optional[UploadFile] = File(None)
    ) -> dict[str, Any]:
        """
        投稿写真をアップロード

        Args:
            request: リクエスト
            image: multipart の image フィールド

        Returns:
            dict[str, Any]: {success: true, url}
        """
        upload_service = get_container(request).upload_service

        data = None
        content_type = None
        if image is not None:
            # サイズ超過を判定できるだけ読み込む
            data = image.file.read(upload_service.max_bytes + 1)
            content_type = image.content_type

        stored = upload_service.upload(content_type, data)
        logger.info(f"Image uploaded: {stored.filename} ({stored.size} bytes)")
        return {"success": True, "url": stored.url}

    return router


def _error_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error, **extra}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """例外とHTTPレスポンスの対応を登録"""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info(f"Rejected {request.method} {request.url.path}: {exc.reason}")
        if exc.details:
            return _error_response(400, exc.reason, details=exc.details)
        return _error_response(400, exc.reason)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info(f"Rejected malformed request {request.method} {request.url.path}")
        details = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return _error_response(400, INVALID_PAYLOAD, details=details)

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
        logger.info(f"Upload rejected: {exc.reason}")
        return _error_response(400, exc.reason)

    @app.exception_handler(ServiceUnavailableError)
    async def service_unavailable_handler(
        request: Request, exc: ServiceUnavailableError
    ) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} while database unavailable")
        return _error_response(503, "database_unavailable")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
        return _error_response(500, str(exc))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.warning(
            f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}"
        )
        return _error_response(429, "rate_limited")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """グローバル例外ハンドラー"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return _error_response(500, str(exc))


def create_app(
    settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None
) -> FastAPI:
    """
    FastAPIアプリケーションを作成

    Args:
        settings: アプリケーション設定（Noneの場合は環境変数から読み込み）
        container: 組み立て済みの依存オブジェクト（Noneの場合は起動時に作成）

    Returns:
        FastAPI: アプリケーション
    """
    settings = settings or (container.settings if container else Settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """起動・シャットダウン時の処理"""
        logger.info("Application starting up")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Project: {settings.project_name}")

        owns_container = getattr(app.state, "container", None) is None
        if owns_container:
            app.state.container = ServiceContainer.build(settings)

        yield

        logger.info("Application shutting down")
        if owns_container:
            app.state.container.close()

    app = FastAPI(
        title=SERVICE_NAME,
        description="植樹投稿（座標・メタデータ・写真）を受け付け、地名を付与して保存・配信するAPI",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.container = container

    # 接続元アドレスごとの制限（X-Forwarded-For はクライアントが書き換えられるため使わない）
    limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter

    @app.middleware("http")
    async def access_log_middleware(request: Request, call_next: Any) -> Any:
        """1リクエスト1行のJSONアクセスログ"""
        started = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            log_access(
                {
                    "ts": to_iso(now_utc()),
                    "ip": client_ip(request),
                    "method": request.method,
                    "path": request.url.path
                    + (f"?{request.url.query}" if request.url.query else ""),
                    "route": getattr(route, "name", None),
                    "status": status_code,
                    "durationMs": int((time.monotonic() - started) * 1000),
                }
            )

    # フロントエンドは別オリジンから配信される
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(create_router(limiter))

    # 静的ファイル（ローカル保存の画像、移行済み画像）
    for mount_path, directory in (("/uploads", settings.uploads_dir), ("/static", settings.static_dir)):
        Path(directory).mkdir(parents=True, exist_ok=True)
        app.mount(mount_path, StaticFiles(directory=directory), name=mount_path.strip("/"))

    return app
