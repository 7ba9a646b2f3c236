"""
ValidationDiagnostics - the non-raising result of partial output validation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from structiq.signatures.signature import Signature


class ValidationDiagnostics(BaseModel):
    """Problems found while validating output values.

    ``missing_fields`` lists required fields that were absent (their entry
    in ``values`` is set to ``None``). ``type_errors`` are never
    recoverable; ``class_errors`` are recoverable only on optional fields.
    """

    values: Dict[str, Any] = Field(default_factory=dict)
    missing_fields: List[str] = Field(default_factory=list)
    type_errors: Dict[str, str] = Field(default_factory=dict)
    class_errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.missing_fields or self.type_errors or self.class_errors)

    def is_recoverable(self, signature: "Signature") -> bool:
        """True when every problem is one a caller may accept.

        Type errors and missing required fields are fatal. Class errors are
        tolerated only on optional fields.
        """
        if self.type_errors or self.missing_fields:
            return False
        for name in self.class_errors:
            field = signature.get_output_field(name)
            if field is None or not field.optional:
                return False
        return True

    def problems(self) -> List[str]:
        """Flat human-readable list of every problem."""
        lines = [f"{name}: missing required field" for name in self.missing_fields]
        lines.extend(f"{name}: {err}" for name, err in self.type_errors.items())
        lines.extend(f"{name}: {err}" for name, err in self.class_errors.items())
        return lines
