"""Tests for caregap.config module."""

import tomllib

from caregap.config import CareGapConfig, generate_config, load_config


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path, capsys):
        config = load_config(str(tmp_path / "nonexistent.toml"))
        assert config["care_gaps"] == CareGapConfig()
        assert config["seed"]["path"] == ""
        assert "not found" in capsys.readouterr().err

    def test_loads_toml_file(self, tmp_path):
        toml_path = tmp_path / "test.toml"
        toml_path.write_text("""
[care_gaps]
a1c_max_months = 6
mammogram_label = "Screening mammography"

[seed]
path = "/data/seed.json"
""")
        config = load_config(str(toml_path))
        assert config["care_gaps"].a1c_max_months == 6
        assert config["care_gaps"].mammogram_label == "Screening mammography"
        assert config["seed"]["path"] == "/data/seed.json"

    def test_partial_config_preserves_defaults(self, tmp_path):
        toml_path = tmp_path / "partial.toml"
        toml_path.write_text("[care_gaps]\nbp_max_months = 3\n")
        config = load_config(str(toml_path))
        assert config["care_gaps"].bp_max_months == 3
        assert config["care_gaps"].a1c_max_months == 12
        assert config["seed"]["path"] == ""

    def test_unknown_keys_ignored(self, tmp_path):
        toml_path = tmp_path / "extra.toml"
        toml_path.write_text("[care_gaps]\nfoo = 1\n")
        assert load_config(str(toml_path))["care_gaps"] == CareGapConfig()

    def test_empty_config(self, tmp_path):
        toml_path = tmp_path / "empty.toml"
        toml_path.write_text("")
        assert load_config(str(toml_path))["care_gaps"] == CareGapConfig()


class TestGenerateConfig:
    def test_generated_file_is_valid_toml(self, tmp_path):
        out = str(tmp_path / "caregap.toml")
        assert generate_config(out) == out
        with open(out, "rb") as f:
            data = tomllib.load(f)
        assert data["care_gaps"]["a1c_label"] == "Hemoglobin A1c"
        assert data["care_gaps"]["mammogram_max_age"] == 74
        assert data["seed"]["path"] == ""

    def test_round_trips_defaults(self, tmp_path):
        out = str(tmp_path / "caregap.toml")
        generate_config(out)
        assert load_config(out)["care_gaps"] == CareGapConfig()
