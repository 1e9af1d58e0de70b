"""ロギング設定"""
import json
import logging
import sys
from typing import Any, Optional

# ロガー設定済みフラグ
_logger_configured = False

ACCESS_LOGGER_NAME = "greenalgeria.access"

APP_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# 自前のアクセスログと重複する、または冗長なライブラリのロガー
QUIET_LOGGERS = ("urllib3", "google", "multipart", "uvicorn.access")


def setup_logging(
    level: str = "INFO",
    enable_cloud_logging: bool = False,
    project_id: Optional[str] = None,
) -> None:
    """
    ロギングを設定

    アプリケーションログは標準出力にテキスト形式で、アクセスログは
    1リクエスト1行のJSONとしてそのまま出力する。

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_cloud_logging: Cloud Loggingを有効にするか
        project_id: GCPプロジェクトID (Cloud Logging有効時に必要)
    """
    global _logger_configured

    if _logger_configured:
        return

    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(fmt=APP_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(console_handler)

    # アクセスログはJSON行をそのまま出す（ログ収集側でパースする）
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_handler = logging.StreamHandler(sys.stdout)
    access_handler.setFormatter(logging.Formatter(fmt="%(message)s"))
    access_logger.addHandler(access_handler)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False

    # Cloud Logging（本番環境用）
    if enable_cloud_logging:
        try:
            from google.cloud import logging as cloud_logging

            client = cloud_logging.Client(project=project_id)
            cloud_handler = cloud_logging.handlers.CloudLoggingHandler(client)
            cloud_handler.setLevel(log_level)
            root_logger.addHandler(cloud_handler)
            access_logger.addHandler(cloud_handler)

            logging.info("Cloud Logging enabled")
        except Exception as e:
            logging.warning(f"Failed to enable Cloud Logging: {e}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger_configured = True
    logging.info(f"Logging configured with level: {level}")


def get_logger(name: str) -> logging.Logger:
    """
    指定名のロガーを取得

    Args:
        name: ロガー名（通常は__name__を指定）

    Returns:
        ロガーインスタンス
    """
    return logging.getLogger(name)


def log_access(entry: dict[str, Any]) -> None:
    """
    アクセスログを1行のJSONとして出力

    Args:
        entry: ts, ip, method, path, route, status, durationMs を含む辞書
    """
    logging.getLogger(ACCESS_LOGGER_NAME).info(json.dumps(entry, ensure_ascii=False))
