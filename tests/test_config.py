import json
from decimal import Decimal
from pathlib import Path

from budget_core.catalog import DEFAULT_CATEGORIES, format_currency, load_catalog
from budget_core.config import ensure_data_directories, load_settings


def test_load_settings_defaults_under_data_dir(tmp_path):
    settings = load_settings({"BUDGET_DATA_DIR": str(tmp_path)})
    assert settings.snapshot_path == Path(tmp_path) / "budget_state.json"
    assert settings.save_delay == 0.5
    assert settings.max_snapshot_bytes == 2 * 1024 * 1024
    assert settings.log_level == "INFO"


def test_load_settings_overrides_and_bad_values(tmp_path):
    settings = load_settings({
        "BUDGET_DATA_DIR": str(tmp_path),
        "BUDGET_SAVE_DELAY": "0",
        "BUDGET_MAX_SNAPSHOT_BYTES": "not-a-number",
        "BUDGET_LOG_LEVEL": "debug",
    })
    assert settings.save_delay == 0.0
    assert settings.max_snapshot_bytes == 2 * 1024 * 1024
    assert settings.log_level == "DEBUG"


def test_ensure_data_directories(tmp_path):
    settings = load_settings({"BUDGET_DATA_DIR": str(tmp_path / "nested" / "data")})
    ensure_data_directories(settings)
    assert settings.data_dir.is_dir()


def test_default_catalog_ids_are_unique():
    ids = [c.id for c in DEFAULT_CATEGORIES]
    assert len(ids) == len(set(ids)) == 12
    assert ids[-1] == "unknown-expenses"
    assert all(c.budget == 0 and c.spent == 0 for c in DEFAULT_CATEGORIES)


def test_load_catalog(tmp_path):
    path = tmp_path / "categories.json"
    path.write_text(json.dumps({"categories": [
        {"id": "pets", "name": "Pets", "icon": "🐶", "budget": 800},
        {"id": "food"},
    ]}), encoding="utf-8")

    cats = load_catalog(str(path))
    assert [c.id for c in cats] == ["pets", "food"]
    assert cats[0].budget == Decimal("800")
    assert cats[1].name == "food"
    assert cats[1].icon == "🍔"


def test_format_currency():
    assert format_currency(Decimal("1234.5")) == "₹1,234.50"
    assert format_currency(0) == "₹0.00"
