from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from aquabill.application.config import BillingConfig, load_config


def _write_yaml(tmp_path: Path, data) -> Path:
    path = tmp_path / "test_config.yaml"
    path.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    return path


def _minimal_config() -> dict:
    return {"database": {"path": "data/test.db"}}


class TestLoadConfig:
    def test_loads_valid_yaml(self, tmp_path):
        config = load_config(_write_yaml(tmp_path, _minimal_config()))
        assert config.database.path == "data/test.db"

    def test_defaults_applied(self, tmp_path):
        config = load_config(_write_yaml(tmp_path, _minimal_config()))
        assert config.billing.due_days == 30
        assert config.billing.payment_tolerance == Decimal("0.01")
        assert config.notifications.enabled is True
        assert config.reports.output_dir == "reports"
        assert config.reports.sheet_name == "Facturas"
        assert config.logging.level == "INFO"
        assert config.logging.log_dir == "logs"

    def test_billing_overrides(self, tmp_path):
        data = _minimal_config()
        data["billing"] = {"due_days": "15", "payment_tolerance": "0.5"}
        config = load_config(_write_yaml(tmp_path, data))
        assert config.billing.due_days == 15
        assert config.billing.payment_tolerance == Decimal("0.50")

    def test_negative_due_days_raises(self, tmp_path):
        data = _minimal_config()
        data["billing"] = {"due_days": -1}
        with pytest.raises(ValueError, match="due_days"):
            load_config(_write_yaml(tmp_path, data))

    def test_negative_tolerance_raises(self, tmp_path):
        data = _minimal_config()
        data["billing"] = {"payment_tolerance": "-0.01"}
        with pytest.raises(ValueError, match="payment_tolerance"):
            load_config(_write_yaml(tmp_path, data))

    def test_notifications_can_be_disabled(self, tmp_path):
        data = _minimal_config()
        data["notifications"] = {"enabled": False}
        assert load_config(_write_yaml(tmp_path, data)).notifications.enabled is False

    def test_missing_database_section_raises(self, tmp_path):
        with pytest.raises(ValueError, match="database"):
            load_config(_write_yaml(tmp_path, {"billing": {"due_days": 30}}))

    def test_missing_database_path_raises(self, tmp_path):
        with pytest.raises(ValueError, match="database.path"):
            load_config(_write_yaml(tmp_path, {"database": {"timeout": 3}}))

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_non_mapping_yaml_raises(self, tmp_path):
        with pytest.raises(ValueError, match="dict"):
            load_config(_write_yaml(tmp_path, ["a", "b"]))

    def test_example_config_loads(self):
        example = Path(__file__).resolve().parents[2] / "configs" / "configuration.example.yaml"
        config = load_config(example)
        assert config.database.path == "data/aquabill.db"
        assert config.billing == BillingConfig()
