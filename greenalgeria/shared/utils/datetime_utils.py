"""日時関連ユーティリティ"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """現在のUTC時間を取得"""
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    datetimeをISO 8601（ミリ秒、末尾Z）の文字列に変換

    Args:
        dt: 変換対象のdatetime（タイムゾーンなしはUTCとして扱う）

    Returns:
        "2024-01-01T12:00:00.000Z" のような文字列
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def format_duration(seconds: float) -> str:
    """
    秒数を読みやすい形式に変換

    Args:
        seconds: 秒数

    Returns:
        "1h23m45s" のような文字列
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return "".join(parts)
