"""Tests for Signature, Field and ValidationDiagnostics."""

import pytest

from structiq.errors import InputValidationError, MissingRequiredField, OutputValidationError
from structiq.signatures import Field, FieldType, Signature, check_field_type


class TestSignatureBuilder:

    def test_fluent_builders_keep_declaration_order(self, mixed_signature):
        assert mixed_signature.output_names == [
            "title", "year", "score", "published", "genre", "meta", "notes",
        ]
        assert [f.name for f in mixed_signature.required_outputs][-1] == "meta"

    def test_duplicate_output_name_rejected(self):
        sig = Signature().add_output("answer")
        with pytest.raises(ValueError, match="duplicate"):
            sig.add_output("answer")

    @pytest.mark.parametrize("name", ["final-answer", "two words", "", "1st"])
    def test_names_unusable_in_markers_rejected(self, name):
        with pytest.raises(ValueError, match="invalid field name"):
            Signature().add_output(name)
        with pytest.raises(ValueError, match="invalid field name"):
            Signature().add_input(name)

    def test_same_name_allowed_across_inputs_and_outputs(self):
        sig = Signature().add_input("text").add_output("text")
        assert sig.get_input_field("text") is not None
        assert sig.get_output_field("text") is not None

    def test_class_output_requires_classes(self):
        with pytest.raises(ValueError):
            Signature().add_class_output("label", [])

    def test_alias_must_point_to_known_class(self):
        with pytest.raises(ValueError, match="unknown class"):
            Signature().add_class_output("label", ["a", "b"], aliases={"x": "c"})

    def test_lookup_missing_field_returns_none(self, qa_signature):
        assert qa_signature.get_output_field("nope") is None
        assert qa_signature.get_input_field("answer") is None

    def test_repr(self, qa_signature):
        assert repr(qa_signature) == "Signature(question -> answer)"


class TestField:

    def test_normalize_class_value(self, sentiment_signature):
        field = sentiment_signature.get_output_field("sentiment")
        assert field.normalize_class_value("positive") == "positive"
        assert field.normalize_class_value("  NEGATIVE ") == "negative"
        assert field.normalize_class_value("Pos") == "positive"
        assert field.normalize_class_value("great") is None

    def test_field_is_frozen(self):
        field = Field(name="x")
        with pytest.raises(Exception):
            field.name = "y"

    def test_type_hint(self, sentiment_signature):
        assert "positive" in sentiment_signature.get_output_field("sentiment").type_hint()
        assert Field(name="n", type=FieldType.INT).type_hint() == "must be an integer"
        assert Field(name="s").type_hint() == ""


class TestValidateInputs:

    def test_missing_required_input(self, qa_signature):
        with pytest.raises(MissingRequiredField) as exc_info:
            qa_signature.validate_inputs({})
        assert exc_info.value.field_name == "question"
        assert isinstance(exc_info.value, InputValidationError)

    def test_none_counts_as_missing(self, qa_signature):
        with pytest.raises(MissingRequiredField):
            qa_signature.validate_inputs({"question": None})

    def test_optional_input_may_be_absent(self):
        sig = Signature().add_input("a").add_optional_input("b")
        sig.validate_inputs({"a": "x"})

    def test_inputs_are_not_coerced(self):
        sig = Signature().add_input("n", FieldType.INT)
        sig.validate_inputs({"n": "not a number"})


class TestValidateOutputs:

    def test_valid_outputs_normalize_class(self, sentiment_signature):
        values = {"sentiment": "POS", "confidence": 0.8}
        result = sentiment_signature.validate_outputs(values)
        assert result == {"sentiment": "positive", "confidence": 0.8}
        assert values["sentiment"] == "POS"

    def test_missing_required_output(self, sentiment_signature):
        with pytest.raises(OutputValidationError) as exc_info:
            sentiment_signature.validate_outputs({"sentiment": "positive"})
        assert exc_info.value.diagnostics.missing_fields == ["confidence"]

    def test_bad_class_value(self, sentiment_signature):
        with pytest.raises(OutputValidationError, match="invalid class value"):
            sentiment_signature.validate_outputs({"sentiment": "great", "confidence": 0.5})

    def test_type_mismatch(self, sentiment_signature):
        with pytest.raises(OutputValidationError) as exc_info:
            sentiment_signature.validate_outputs({"sentiment": "positive", "confidence": "high"})
        assert "confidence" in exc_info.value.diagnostics.type_errors

    def test_optional_output_may_be_absent(self):
        sig = Signature().add_output("a").add_optional_output("b")
        assert sig.validate_outputs({"a": "x"}) == {"a": "x"}


class TestValidateOutputsPartial:

    def test_missing_required_set_to_none(self, sentiment_signature):
        diag = sentiment_signature.validate_outputs_partial({"sentiment": "neg"})
        assert diag.values == {"sentiment": "negative", "confidence": None}
        assert diag.missing_fields == ["confidence"]
        assert diag.has_errors
        assert not diag.is_recoverable(sentiment_signature)

    def test_type_errors_are_never_recoverable(self):
        sig = Signature().add_optional_output("n", FieldType.INT)
        diag = sig.validate_outputs_partial({"n": "abc"})
        assert diag.type_errors
        assert not diag.is_recoverable(sig)

    def test_bad_class_on_optional_field_is_recoverable(self):
        sig = Signature().add_output("a").add_class_output("tag", ["x", "y"], optional=True)
        diag = sig.validate_outputs_partial({"a": "ok", "tag": "z"})
        assert diag.class_errors
        assert diag.is_recoverable(sig)

    def test_problems_lists_everything(self, sentiment_signature):
        diag = sentiment_signature.validate_outputs_partial({"sentiment": "meh"})
        problems = diag.problems()
        assert any("confidence" in p for p in problems)
        assert any("sentiment" in p for p in problems)


class TestTypeRules:

    @pytest.mark.parametrize(
        "ftype, value, ok",
        [
            (FieldType.STRING, "x", True),
            (FieldType.STRING, 1, False),
            (FieldType.INT, 3, True),
            (FieldType.INT, 3.0, True),
            (FieldType.INT, 3.5, False),
            (FieldType.INT, True, False),
            (FieldType.FLOAT, 2, True),
            (FieldType.FLOAT, False, False),
            (FieldType.BOOL, True, True),
            (FieldType.BOOL, "true", False),
            (FieldType.JSON, {"a": 1}, True),
            (FieldType.JSON, [1, 2], True),
            (FieldType.JSON, "{}", True),
            (FieldType.JSON, 5, False),
        ],
    )
    def test_check_field_type(self, ftype, value, ok):
        field = Field(name="f", type=ftype)
        assert (check_field_type(field, value) is None) is ok

    def test_none_only_for_optional(self):
        assert check_field_type(Field(name="f"), None) is not None
        assert check_field_type(Field(name="f", optional=True), None) is None


class TestJsonSchema:

    def test_schema_types_and_required(self, mixed_signature):
        schema = mixed_signature.to_json_schema()
        props = schema["properties"]
        assert schema["type"] == "object"
        assert props["year"]["type"] == "integer"
        assert props["score"]["type"] == "number"
        assert props["published"]["type"] == "boolean"
        assert props["genre"] == {"type": "string", "enum": ["fiction", "non-fiction"]}
        assert props["meta"]["type"] == "object"
        assert "notes" not in schema["required"]
        assert schema["description"] == "Extract facts."

    def test_no_description_key_when_empty(self):
        schema = Signature().add_output("a").to_json_schema()
        assert "description" not in schema
