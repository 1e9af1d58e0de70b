"""ジオコーディング機能のドメインモデル"""
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class PlaceNames:
    """逆ジオコーディングで得られる地名（キャッシュで共有するため不変）"""

    city: Optional[str] = None  # 市・町・村
    district: Optional[str] = None  # 地区・街区

    @classmethod
    def empty(cls) -> "PlaceNames":
        """地名なし（失敗時のフォールバック値）"""
        return cls(city=None, district=None)

    @property
    def is_empty(self) -> bool:
        """どちらのフィールドも取得できなかったか"""
        return self.city is None and self.district is None

    def to_dict(self) -> dict[str, Any]:
        return {"city": self.city, "district": self.district}
