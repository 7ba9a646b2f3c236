from structiq.repair.coercion import (
    coerce_outputs,
    extract_numeric_value,
    normalize_output_keys,
)
from structiq.repair.json_repair import (
    extract_json,
    find_closing_brace,
    find_json_candidates,
    loads_lenient,
    repair_json,
    strip_code_fences,
)
from structiq.repair.markers import (
    MARKER_RE,
    format_marker,
    marker_variants,
    strip_markers,
)

__all__ = [
    "MARKER_RE",
    "coerce_outputs",
    "extract_json",
    "extract_numeric_value",
    "find_closing_brace",
    "find_json_candidates",
    "format_marker",
    "loads_lenient",
    "marker_variants",
    "normalize_output_keys",
    "repair_json",
    "strip_code_fences",
    "strip_markers",
]
