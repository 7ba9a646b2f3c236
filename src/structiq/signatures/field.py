"""
Field declarations used by ``Signature``.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class FieldType(str, Enum):
    """Closed set of value types a field may declare."""

    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    CLASS = "class"
    JSON = "json"


_TYPE_HINTS: Dict[FieldType, str] = {
    FieldType.STRING: "",
    FieldType.INT: "must be an integer",
    FieldType.FLOAT: "must be a number",
    FieldType.BOOL: "must be true or false",
    FieldType.JSON: "must be valid JSON",
}


class Field(BaseModel):
    """A named, typed input or output slot.

    ``classes`` is the ordered canonical value set of a ``CLASS`` field and
    ``aliases`` maps short forms (``"pos"``) to a canonical value
    (``"positive"``).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType = FieldType.STRING
    description: str = ""
    optional: bool = False
    classes: Tuple[str, ...] = ()
    aliases: Dict[str, str] = {}

    @property
    def is_numeric(self) -> bool:
        return self.type in (FieldType.INT, FieldType.FLOAT)

    def normalize_class_value(self, value: str) -> Optional[str]:
        """Resolve *value* to a canonical class, or ``None`` if it is not one.

        Matching is case-insensitive and ignores surrounding whitespace.
        Canonical names win over aliases.
        """
        candidate = str(value).strip()
        if candidate in self.classes:
            return candidate
        lowered = candidate.lower()
        for cls in self.classes:
            if cls.lower() == lowered:
                return cls
        for alias, canonical in self.aliases.items():
            if alias.lower() == lowered:
                return canonical
        return None

    def type_hint(self) -> str:
        """Short human instruction describing the expected value."""
        if self.type == FieldType.CLASS and self.classes:
            return "must be one of: " + ", ".join(self.classes)
        return _TYPE_HINTS.get(self.type, "")
