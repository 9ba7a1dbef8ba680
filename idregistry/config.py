"""
Runtime settings and table registration loading.

Settings come from the environment (a .env file is loaded by the CLI via
env.load_env). Table registrations are a JSON file of descriptors:

    {"tables": [{"table_name": "drugs", "id_column_name": "drug_id"}, ...]}
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .descriptor import TableDescriptor
from .errors import ConfigError, DescriptorError
from .schema import descriptor_from_dict

MAX_BATCH = 1000
MAX_COLLISION_RETRIES = 5

DEFAULT_DATABASE_URL = "sqlite:///data/idregistry.db"
DEFAULT_TABLES_PATH = Path("config/tables.json")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    log_dir: Optional[Path] = None
    max_batch: int = MAX_BATCH
    max_collision_retries: int = MAX_COLLISION_RETRIES
    tables_path: Path = DEFAULT_TABLES_PATH

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from IDREGISTRY_* environment variables."""
        log_dir = os.getenv("IDREGISTRY_LOG_DIR")
        max_batch = _int_env("IDREGISTRY_MAX_BATCH", MAX_BATCH)
        return cls(
            database_url=os.getenv("IDREGISTRY_DATABASE_URL") or DEFAULT_DATABASE_URL,
            log_level=(os.getenv("IDREGISTRY_LOG_LEVEL") or "INFO").upper(),
            log_dir=Path(log_dir) if log_dir else None,
            # Batches above MAX_BATCH would hold locks for too long
            max_batch=min(max(max_batch, 1), MAX_BATCH),
            max_collision_retries=max(_int_env("IDREGISTRY_MAX_COLLISION_RETRIES", MAX_COLLISION_RETRIES), 0),
            tables_path=Path(os.getenv("IDREGISTRY_TABLES") or DEFAULT_TABLES_PATH),
        )


def load_table_descriptors(path: Path) -> List[TableDescriptor]:
    """
    Load the ordered list of table registrations.

    Args:
        path: JSON file with a top-level "tables" list

    Returns:
        Descriptors in file order

    Raises:
        FileNotFoundError: If the file does not exist
        DescriptorError: If the file or any entry is invalid
    """
    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise DescriptorError([f"{path}: invalid JSON ({e})"]) from e

    tables = data.get("tables") if isinstance(data, dict) else None
    if not isinstance(tables, list):
        raise DescriptorError([f"{path}: expected a top-level 'tables' list"])

    descriptors = []
    errors = []
    seen = set()
    for i, entry in enumerate(tables):
        try:
            descriptor = descriptor_from_dict(entry)
        except DescriptorError as e:
            errors.extend(f"tables[{i}]: {msg}" for msg in e.errors)
            continue
        if descriptor.table_name in seen:
            errors.append(f"tables[{i}]: duplicate table '{descriptor.table_name}'")
            continue
        seen.add(descriptor.table_name)
        descriptors.append(descriptor)

    if errors:
        raise DescriptorError(errors)
    return descriptors
