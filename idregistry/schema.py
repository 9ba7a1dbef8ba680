from typing import Any, Dict, List

from .descriptor import TableDescriptor
from .errors import DescriptorError

STR_FIELDS = [
    "table_name",
    "id_column_name",
    "external_namespace_tag",
    "identifier_column_name",
]
BOOL_FIELDS = [
    "tracking_disabled",
    "is_document_drive",
    "is_externally_mapped",
]
KNOWN_FIELDS = set(STR_FIELDS) | set(BOOL_FIELDS) | {"vertical_group_columns"}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_descriptor(data: Dict[str, Any], require_table: bool = True) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    require_table is set for backfill registrations, which always need an
    owning table; single allocations may run without one.
    """
    errors: List[str] = []

    if not isinstance(data, dict):
        return ["Descriptor must be an object"]

    for f in sorted(set(data) - KNOWN_FIELDS):
        errors.append(f"Unknown field: {f}")

    if require_table and not _is_non_empty_str(data.get("table_name")):
        errors.append("Missing required field: table_name")

    for f in STR_FIELDS:
        if f in data and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in BOOL_FIELDS:
        if f in data and not isinstance(data[f], bool):
            errors.append(f"Field '{f}' must be true or false if provided")

    columns = data.get("vertical_group_columns")
    if columns is not None:
        if not isinstance(columns, list) or not all(_is_non_empty_str(c) for c in columns):
            errors.append("Field 'vertical_group_columns' must be a list of column names")
        elif len(set(columns)) != len(columns):
            errors.append("Field 'vertical_group_columns' must not repeat a column")
        elif not _is_non_empty_str(data.get("table_name")):
            errors.append("Field 'vertical_group_columns' requires table_name")
        elif data.get("identifier_column_name", "uuid") in columns:
            errors.append("Field 'vertical_group_columns' must not include the identifier column")

    if data.get("identifier_column_name") == "":
        errors.append("Field 'identifier_column_name' must be a non-empty string")

    return errors


def descriptor_from_dict(data: Dict[str, Any], require_table: bool = True) -> TableDescriptor:
    """
    Build a TableDescriptor from a registration entry.

    Raises:
        DescriptorError: If validate_descriptor reports any problem
    """
    errors = validate_descriptor(data, require_table=require_table)
    if errors:
        raise DescriptorError(errors)
    values = dict(data)
    values["vertical_group_columns"] = tuple(values.get("vertical_group_columns") or ())
    return TableDescriptor(**values)
