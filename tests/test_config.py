"""
Tests for settings and table registration loading.
"""

import json
import os

import pytest
from pathlib import Path

from idregistry.config import (
    DEFAULT_DATABASE_URL,
    MAX_BATCH,
    Settings,
    load_table_descriptors,
)
from idregistry.descriptor import TableDescriptor
from idregistry.env import load_env
from idregistry.errors import ConfigError, DescriptorError

ENV_VARS = [
    "IDREGISTRY_DATABASE_URL",
    "IDREGISTRY_LOG_LEVEL",
    "IDREGISTRY_LOG_DIR",
    "IDREGISTRY_MAX_BATCH",
    "IDREGISTRY_MAX_COLLISION_RETRIES",
    "IDREGISTRY_TABLES",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def _write(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings.from_env()
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "INFO"
        assert settings.log_dir is None
        assert settings.max_batch == MAX_BATCH
        assert settings.max_collision_retries == 5

    def test_from_environment(self, clean_env, tmp_path):
        clean_env.setenv("IDREGISTRY_DATABASE_URL", "sqlite:///other.db")
        clean_env.setenv("IDREGISTRY_LOG_LEVEL", "debug")
        clean_env.setenv("IDREGISTRY_LOG_DIR", str(tmp_path))
        clean_env.setenv("IDREGISTRY_MAX_BATCH", "250")
        clean_env.setenv("IDREGISTRY_TABLES", "tables.json")

        settings = Settings.from_env()

        assert settings.database_url == "sqlite:///other.db"
        assert settings.log_level == "DEBUG"
        assert settings.log_dir == tmp_path
        assert settings.max_batch == 250
        assert settings.tables_path == Path("tables.json")

    def test_max_batch_is_clamped(self, clean_env):
        clean_env.setenv("IDREGISTRY_MAX_BATCH", "50000")
        assert Settings.from_env().max_batch == MAX_BATCH
        clean_env.setenv("IDREGISTRY_MAX_BATCH", "0")
        assert Settings.from_env().max_batch == 1

    def test_non_integer_rejected(self, clean_env):
        clean_env.setenv("IDREGISTRY_MAX_BATCH", "lots")
        with pytest.raises(ConfigError, match="IDREGISTRY_MAX_BATCH"):
            Settings.from_env()

    def test_non_integer_retries_rejected(self, clean_env):
        """A bad setting is a configuration error, not a descriptor error."""
        clean_env.setenv("IDREGISTRY_MAX_COLLISION_RETRIES", "five")
        with pytest.raises(ConfigError) as exc_info:
            Settings.from_env()
        assert not isinstance(exc_info.value, DescriptorError)
        assert isinstance(exc_info.value, ValueError)


class TestLoadEnv:
    def test_loads_dotenv_from_cwd(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("IDREGISTRY_MAX_BATCH=42\n", encoding="utf-8")
        clean_env.chdir(tmp_path)

        load_env()
        try:
            assert Settings.from_env().max_batch == 42
        finally:
            os.environ.pop("IDREGISTRY_MAX_BATCH", None)

    def test_missing_dotenv_is_fine(self, clean_env, tmp_path):
        clean_env.chdir(tmp_path)
        load_env()
        assert Settings.from_env().max_batch == MAX_BATCH


class TestLoadTableDescriptors:
    def test_loads_in_order(self, tmp_path):
        path = _write(tmp_path / "tables.json", {"tables": [
            {"table_name": "users"},
            {"table_name": "drugs", "id_column_name": "drug_id"},
            {"table_name": "facility_user_ids", "vertical_group_columns": ["uid", "facility_id"]},
        ]})

        descriptors = load_table_descriptors(path)

        assert [d.table_name for d in descriptors] == ["users", "drugs", "facility_user_ids"]
        assert descriptors[1] == TableDescriptor(table_name="drugs", id_column_name="drug_id")
        assert descriptors[2].is_vertical

    def test_example_file_is_valid(self):
        path = Path(__file__).parent.parent / "config" / "tables.example.json"
        descriptors = load_table_descriptors(path)
        assert "facility_user_ids" in [d.table_name for d in descriptors]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "tables.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DescriptorError, match="invalid JSON"):
            load_table_descriptors(path)

    def test_missing_tables_list(self, tmp_path):
        path = _write(tmp_path / "tables.json", [{"table_name": "users"}])
        with pytest.raises(DescriptorError, match="'tables' list"):
            load_table_descriptors(path)

    def test_errors_are_indexed(self, tmp_path):
        path = _write(tmp_path / "tables.json", {"tables": [
            {"table_name": "users"},
            {"id_column_name": "id"},
            {"table_name": "users"},
        ]})

        with pytest.raises(DescriptorError) as exc_info:
            load_table_descriptors(path)

        errors = exc_info.value.errors
        assert any(err.startswith("tables[1]:") and "table_name" in err for err in errors)
        assert "tables[2]: duplicate table 'users'" in errors

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_table_descriptors(tmp_path / "nope.json")
