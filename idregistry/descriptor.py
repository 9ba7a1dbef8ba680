"""
Table descriptors.

A descriptor tells the engine where identifiers live for one table and
which backfill strategy applies. Descriptors are caller configuration and
are never persisted.
"""

from dataclasses import dataclass, field
from typing import Tuple

ROW_KEYED = "row_keyed"
VERTICAL = "vertical"


@dataclass(frozen=True)
class TableDescriptor:
    """
    Identifier configuration for a single table.

    Attributes:
        table_name: Owning table ("" when identifiers are not tied to a table)
        id_column_name: Row key column (defaults to "id" when table_name is set)
        vertical_group_columns: Ordered key columns of a vertical table
        tracking_disabled: Skip the central registry for checks and writes
        external_namespace_tag: Label of an external document namespace
        is_document_drive: Identifiers label documents saved to drive
        is_externally_mapped: Identifiers were mapped through an external mapping table
        identifier_column_name: Column holding the identifier in the owning table
    """

    table_name: str = ""
    id_column_name: str = ""
    vertical_group_columns: Tuple[str, ...] = field(default_factory=tuple)
    tracking_disabled: bool = False
    external_namespace_tag: str = ""
    is_document_drive: bool = False
    is_externally_mapped: bool = False
    identifier_column_name: str = "uuid"

    def __post_init__(self):
        # Frozen, so defaults that depend on other fields go through object.__setattr__
        if self.table_name and not self.id_column_name:
            object.__setattr__(self, "id_column_name", "id")
        if not self.table_name:
            object.__setattr__(self, "id_column_name", "")
        object.__setattr__(self, "vertical_group_columns", tuple(self.vertical_group_columns))

    @property
    def has_table(self) -> bool:
        return bool(self.table_name)

    @property
    def is_vertical(self) -> bool:
        return bool(self.vertical_group_columns)

    @property
    def strategy(self) -> str:
        return VERTICAL if self.is_vertical else ROW_KEYED
