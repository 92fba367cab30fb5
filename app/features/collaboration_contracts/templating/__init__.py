"""
Templating subpackage: token scanning, descriptor resolution, occurrence
assignment and rendering.
"""

from .descriptors import (
    DescriptorResolver,
    RecordSource,
    collect_declared_variables,
    format_resolved_value,
    parse_descriptor,
    resolve_field_path,
)
from .occurrences import Assignment, OccurrencePlan, assign_occurrences
from .record_cache import RecordCache
from .renderer import (
    PreparedTemplate,
    build_document,
    format_display_date,
    normalize_rendered,
    prepare_template,
    render_body,
    render_contract,
)
from .tokens import (
    REPEATABLE_NAMES,
    SIGNATURE_NAMES,
    format_token,
    is_repeatable,
    is_signature,
    normalize_variable_key,
    parse_tokens,
)

__all__ = [
    "REPEATABLE_NAMES",
    "SIGNATURE_NAMES",
    "Assignment",
    "DescriptorResolver",
    "OccurrencePlan",
    "PreparedTemplate",
    "RecordCache",
    "RecordSource",
    "assign_occurrences",
    "build_document",
    "collect_declared_variables",
    "format_display_date",
    "format_resolved_value",
    "format_token",
    "is_repeatable",
    "is_signature",
    "normalize_rendered",
    "normalize_variable_key",
    "parse_descriptor",
    "parse_tokens",
    "prepare_template",
    "render_body",
    "render_contract",
    "resolve_field_path",
]
