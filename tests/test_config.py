"""
Tests for settings loading and startup validation.
"""

import pytest
from pydantic import ValidationError

from posprint.config.constants import DEFAULT_JOB_NAME, TransportTimeouts
from posprint.utils import config as config_module
from posprint.utils.config import PosPrintSettings, reload_settings, validate_settings_on_startup


def test_defaults():
    settings = PosPrintSettings()

    assert settings.log_level == "info"
    assert settings.job_name == DEFAULT_JOB_NAME
    assert settings.management_object_timeout == TransportTimeouts.MANAGEMENT_OBJECT
    assert settings.pending_deletion_accessible is True
    assert settings.spool_directory is None


def test_environment_prefix(monkeypatch):
    monkeypatch.setenv("POSPRINT_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("POSPRINT_PORT_COPY_TIMEOUT", "30")
    monkeypatch.setenv("POSPRINT_PENDING_DELETION_ACCESSIBLE", "false")

    settings = PosPrintSettings()

    assert settings.log_level == "debug"
    assert settings.port_copy_timeout == 30
    assert settings.pending_deletion_accessible is False


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("POSPRINT_JOB_NAME=Kitchen\n", encoding="utf-8")
    assert PosPrintSettings().job_name == "Kitchen"


@pytest.mark.parametrize("field, value", [
    ("log_level", "verbose"),
    ("job_name", "   "),
    ("port_copy_timeout", 0),
    ("lock_timeout_seconds", 0),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        PosPrintSettings(**{field: value})


def test_reload_settings(monkeypatch):
    monkeypatch.setattr(config_module, "_settings", None)
    first = config_module.get_settings()
    assert config_module.get_settings() is first

    monkeypatch.setenv("POSPRINT_JOB_NAME", "Bar")
    reloaded = reload_settings()

    assert reloaded is not first
    assert config_module.get_settings().job_name == "Bar"


class TestStartupValidation:

    def test_report_shape(self, tmp_path):
        report = validate_settings_on_startup(PosPrintSettings(temp_dir=str(tmp_path)))
        assert set(report) == {"valid", "errors", "warnings", "info"}
        assert report["valid"] is True

    def test_creates_missing_temp_dir(self, tmp_path):
        target = tmp_path / "spool-temp"
        report = validate_settings_on_startup(PosPrintSettings(temp_dir=str(target)))
        assert target.is_dir()
        assert any("Created temp directory" in line for line in report["info"])

    def test_relative_spool_directory(self, tmp_path):
        settings = PosPrintSettings(temp_dir=str(tmp_path), spool_directory="spool")
        report = validate_settings_on_startup(settings)
        assert report["valid"] is False
        assert report["errors"] == ["Spool directory must be absolute: spool"]

    def test_missing_powershell_is_a_warning(self, tmp_path):
        settings = PosPrintSettings(temp_dir=str(tmp_path), powershell_executable="no-such-shell-xyz")
        report = validate_settings_on_startup(settings)
        assert report["valid"] is True
        assert any("no-such-shell-xyz" in line for line in report["warnings"])
