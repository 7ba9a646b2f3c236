"""
Signature - the declarative input/output contract for one model call.

A Signature is built once with the fluent ``add_*`` methods and then
shared read-only by every adapter and module that uses it::

    sig = (
        Signature("Classify the sentiment of a review.")
        .add_input("review", description="Customer review text")
        .add_class_output("sentiment", ["positive", "negative"],
                          aliases={"pos": "positive", "neg": "negative"})
        .add_output("confidence", FieldType.FLOAT)
    )
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from structiq.errors import MissingRequiredField, OutputValidationError
from structiq.signatures.diagnostics import ValidationDiagnostics
from structiq.signatures.field import Field, FieldType

_JSON_SCHEMA_TYPES: Dict[FieldType, str] = {
    FieldType.STRING: "string",
    FieldType.INT: "integer",
    FieldType.FLOAT: "number",
    FieldType.BOOL: "boolean",
    FieldType.CLASS: "string",
    FieldType.JSON: "object",
}

# Field names appear inside ``[[ ## name ## ]]`` markers.
_FIELD_NAME_RE = re.compile(r"[A-Za-z_]\w*")


def check_field_type(field: Field, value: Any) -> Optional[str]:
    """Return a type error message for *value*, or ``None`` if it fits *field*."""
    if value is None:
        return None if field.optional else "value cannot be null"

    ftype = field.type
    if ftype in (FieldType.STRING, FieldType.CLASS):
        ok = isinstance(value, str)
    elif ftype == FieldType.INT:
        ok = (isinstance(value, int) and not isinstance(value, bool)) or (
            isinstance(value, float) and value.is_integer()
        )
    elif ftype == FieldType.FLOAT:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif ftype == FieldType.BOOL:
        ok = isinstance(value, bool)
    elif ftype == FieldType.JSON:
        ok = isinstance(value, (dict, list, str))
    else:  # pragma: no cover - FieldType is closed
        ok = False

    if ok:
        return None
    return f"expected {ftype.value}, got {type(value).__name__}"


class Signature:
    """Ordered, named, typed input and output fields plus a task description."""

    def __init__(self, description: str = ""):
        self.description = description
        self.input_fields: List[Field] = []
        self.output_fields: List[Field] = []

    def __repr__(self) -> str:
        ins = ", ".join(f.name for f in self.input_fields)
        outs = ", ".join(f.name for f in self.output_fields)
        return f"Signature({ins} -> {outs})"

    # ------------------------------------------------------------------ #
    # Builders                                                            #
    # ------------------------------------------------------------------ #

    def add_input(
        self,
        name: str,
        type: FieldType = FieldType.STRING,
        description: str = "",
        *,
        optional: bool = False,
    ) -> "Signature":
        self._append(
            self.input_fields,
            Field(name=name, type=type, description=description, optional=optional),
        )
        return self

    def add_optional_input(
        self, name: str, type: FieldType = FieldType.STRING, description: str = ""
    ) -> "Signature":
        return self.add_input(name, type, description, optional=True)

    def add_output(
        self,
        name: str,
        type: FieldType = FieldType.STRING,
        description: str = "",
        *,
        optional: bool = False,
    ) -> "Signature":
        self._append(
            self.output_fields,
            Field(name=name, type=type, description=description, optional=optional),
        )
        return self

    def add_optional_output(
        self, name: str, type: FieldType = FieldType.STRING, description: str = ""
    ) -> "Signature":
        return self.add_output(name, type, description, optional=True)

    def add_class_output(
        self,
        name: str,
        classes: Iterable[str],
        description: str = "",
        *,
        aliases: Optional[Mapping[str, str]] = None,
        optional: bool = False,
    ) -> "Signature":
        choices = tuple(classes)
        if not choices:
            raise ValueError(f"class field '{name}' needs at least one class")
        for alias, canonical in (aliases or {}).items():
            if canonical not in choices:
                raise ValueError(
                    f"alias '{alias}' of field '{name}' points to unknown class '{canonical}'"
                )
        self._append(
            self.output_fields,
            Field(
                name=name,
                type=FieldType.CLASS,
                description=description,
                optional=optional,
                classes=choices,
                aliases=dict(aliases or {}),
            ),
        )
        return self

    @staticmethod
    def _append(fields: List[Field], field: Field) -> None:
        if not _FIELD_NAME_RE.fullmatch(field.name):
            raise ValueError(
                f"invalid field name: {field.name!r} (letters, digits and underscores only)"
            )
        if any(f.name == field.name for f in fields):
            raise ValueError(f"duplicate field name: {field.name}")
        fields.append(field)

    # ------------------------------------------------------------------ #
    # Lookup                                                              #
    # ------------------------------------------------------------------ #

    def get_input_field(self, name: str) -> Optional[Field]:
        return next((f for f in self.input_fields if f.name == name), None)

    def get_output_field(self, name: str) -> Optional[Field]:
        return next((f for f in self.output_fields if f.name == name), None)

    @property
    def output_names(self) -> List[str]:
        return [f.name for f in self.output_fields]

    @property
    def required_outputs(self) -> List[Field]:
        return [f for f in self.output_fields if not f.optional]

    # ------------------------------------------------------------------ #
    # Validation                                                          #
    # ------------------------------------------------------------------ #

    def validate_inputs(self, values: Mapping[str, Any]) -> None:
        """Fail if a required input is absent. Values are not coerced."""
        for field in self.input_fields:
            if field.optional:
                continue
            if field.name not in values or values[field.name] is None:
                raise MissingRequiredField(field.name)

    def validate_outputs(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Strictly validate *values* and return a class-normalised copy.

        Raises:
            OutputValidationError: on any missing required field, type
                mismatch or unknown class value.
        """
        diagnostics = self.validate_outputs_partial(values)
        if diagnostics.has_errors:
            raise OutputValidationError(
                "; ".join(diagnostics.problems()),
                diagnostics=diagnostics,
                raw_output=dict(values),
            )
        return diagnostics.values

    def validate_outputs_partial(self, values: Mapping[str, Any]) -> ValidationDiagnostics:
        """Validate *values* without raising.

        The returned ``values`` hold class-normalised outputs with every
        missing required field set to ``None``.
        """
        diag = ValidationDiagnostics(values=dict(values))

        for field in self.output_fields:
            value = values.get(field.name)
            if value is None:
                if not field.optional:
                    diag.missing_fields.append(field.name)
                    diag.values[field.name] = None
                continue

            if field.type == FieldType.CLASS and isinstance(value, str):
                canonical = field.normalize_class_value(value)
                if canonical is None:
                    diag.class_errors[field.name] = (
                        f"invalid class value: {value!r} "
                        f"(must be one of {list(field.classes)})"
                    )
                else:
                    diag.values[field.name] = canonical

            err = check_field_type(field, value)
            if err is not None:
                diag.type_errors[field.name] = err

        return diag

    # ------------------------------------------------------------------ #
    # Export                                                              #
    # ------------------------------------------------------------------ #

    def to_json_schema(self) -> Dict[str, Any]:
        """JSON Schema describing the output object."""
        properties: Dict[str, Any] = {}
        for field in self.output_fields:
            prop: Dict[str, Any] = {"type": _JSON_SCHEMA_TYPES[field.type]}
            if field.description:
                prop["description"] = field.description
            if field.type == FieldType.CLASS and field.classes:
                prop["enum"] = list(field.classes)
            properties[field.name] = prop

        schema: Dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "required": [f.name for f in self.required_outputs],
        }
        if self.description:
            schema["description"] = self.description
        return schema
