"""座標の正規化とキャッシュキー生成"""
import math
from typing import Any

DEFAULT_ROUND_PRECISION = 4  # 約11m
DEFAULT_CACHE_PRECISION = 3  # 約111m


def round_coordinate(value: float, precision: int = DEFAULT_ROUND_PRECISION) -> float:
    """
    座標を指定桁数に丸める（0から遠い方向への四捨五入）

    value × 10^precision を丸めてから割り戻す。-0.0 は 0.0 に揃える。

    Args:
        value: 緯度または経度（有限値であること）
        precision: 小数点以下の桁数

    Returns:
        float: 丸めた値
    """
    factor = 10**precision
    scaled = math.floor(abs(value) * factor + 0.5)
    return math.copysign(scaled, value) / factor + 0.0


def normalize(
    lat: float, lng: float, precision: int = DEFAULT_ROUND_PRECISION
) -> tuple[float, float]:
    """
    緯度・経度を保存用の精度に正規化

    Args:
        lat: 緯度
        lng: 経度
        precision: 小数点以下の桁数

    Returns:
        tuple[float, float]: (緯度, 経度)
    """
    return round_coordinate(lat, precision), round_coordinate(lng, precision)


def cache_key(lat: float, lng: float, precision: int = DEFAULT_CACHE_PRECISION) -> str:
    """
    ジオコーディングキャッシュのキーを生成

    正規化より粗い精度で文字列化するため、近接する地点は同じキーになる。

    Args:
        lat: 緯度
        lng: 経度
        precision: キー生成に使う小数点以下の桁数

    Returns:
        str: "36.753|3.042" 形式のキー
    """
    return f"{lat + 0.0:.{precision}f}|{lng + 0.0:.{precision}f}"


def build_location(lat: float, lng: float) -> dict[str, Any]:
    """
    地図表示用の location 構造を生成（coordinates は常に [経度, 緯度]）

    Args:
        lat: 正規化済みの緯度
        lng: 正規化済みの経度

    Returns:
        dict[str, Any]: GeoJSON Point 形式の辞書
    """
    return {
        "type": "Point",
        "coordinates": [lng, lat],
        "lat": lat,
        "lng": lng,
    }
