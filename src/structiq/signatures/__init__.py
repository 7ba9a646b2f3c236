from structiq.signatures.diagnostics import ValidationDiagnostics
from structiq.signatures.field import Field, FieldType
from structiq.signatures.signature import Signature, check_field_type

__all__ = [
    "Field",
    "FieldType",
    "Signature",
    "ValidationDiagnostics",
    "check_field_type",
]
