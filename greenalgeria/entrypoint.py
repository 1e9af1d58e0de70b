"""CLIエントリーポイント"""
import argparse
import sys
from typing import Optional

from .features.batch.orchestrator import JOBS, BatchOrchestrator
from .infrastructure.config.settings import Settings
from .shared.logging.config import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数の定義"""
    parser = argparse.ArgumentParser(description="GreenAlgeria 植樹投稿バックエンド")

    parser.add_argument(
        "--serve",
        action="store_true",
        help="HTTPサーバーを起動（--job 未指定時の既定動作）",
    )

    parser.add_argument(
        "--job",
        type=str,
        choices=JOBS,
        help="実行するメンテナンスジョブ",
    )

    parser.add_argument(
        "--limit",
        type=int,
        help="ジョブで処理する投稿数の上限",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="対象件数のみ表示し、外部APIの呼び出しや更新は行わない",
    )

    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="環境変数ファイルのパス（デフォルト: .env）",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="ログレベル",
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    メインエントリーポイント

    Returns:
        int: 終了コード（0: 成功, 1: 失敗）
    """
    args = build_parser().parse_args(argv)

    try:
        # 設定を読み込み
        settings = Settings(_env_file=args.env_file)

        # ログレベルを上書き
        if args.log_level:
            settings.log_level = args.log_level

        setup_logging(
            level=settings.log_level,
            enable_cloud_logging=settings.gcp_logging_enabled,
            project_id=settings.gcp_project_id,
        )

        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Project: {settings.project_name}")

        if args.job:
            orchestrator = BatchOrchestrator(settings)
            try:
                result = orchestrator.run(args.job, limit=args.limit, dry_run=args.dry_run)
            finally:
                orchestrator.container.close()

            logger.info(f"Job result: {result}")
            return 0

        import uvicorn

        from .server import create_app

        uvicorn.run(
            create_app(settings),
            host="0.0.0.0",
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130  # SIGINT
    except Exception as e:
        logger.error(f"Application failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
