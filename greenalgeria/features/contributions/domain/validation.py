"""投稿ペイロードのバリデーション"""
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ....shared.exceptions.errors import ValidationError

EMPTY_PAYLOAD = "empty_payload"
INVALID_PAYLOAD = "invalid_payload"
INVALID_COORDINATES = "invalid_coordinates"


class CoordinatesInput(BaseModel):
    """投稿に必須の座標（数値文字列も受け付ける）"""

    model_config = ConfigDict(extra="ignore")

    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)

    @field_validator("lat", "lng", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        # bool は int のサブクラスのため明示的に除外
        if isinstance(value, bool):
            raise ValueError("must be a number, not a boolean")
        return value


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, (str, int, float)) or value is None:
        return value
    return repr(value)


def validate_payload(payload: Any) -> tuple[float, float]:
    """
    投稿ペイロードを検証し、座標を返す

    検証順: ペイロードが空でない → オブジェクトである → lat/lng が範囲内の有限値

    Args:
        payload: リクエストボディ（JSON）

    Returns:
        tuple[float, float]: (緯度, 経度)

    Raises:
        ValidationError: 検証に失敗した場合（reason と details を持つ）
    """
    if not payload:
        raise ValidationError(EMPTY_PAYLOAD, "Payload is empty")

    if not isinstance(payload, dict):
        raise ValidationError(INVALID_PAYLOAD, "Payload must be a JSON object")

    try:
        coordinates = CoordinatesInput.model_validate(payload)
    except PydanticValidationError as e:
        details = []
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"])
            value = None if error["type"] == "missing" else _json_safe(error.get("input"))
            details.append({"field": field, "message": error["msg"], "value": value})

        raise ValidationError(
            INVALID_COORDINATES, "Invalid coordinates", details=details
        ) from e

    return coordinates.lat, coordinates.lng
