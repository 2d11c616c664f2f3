"""Tests for settings validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.core.config import AntiBanSettings, AppSettings, LogSettings, MessagingSettings


class TestAntiBanSettings:
    def test_defaults_are_consistent(self) -> None:
        antiban = AntiBanSettings()

        assert (antiban.random_delay_min_ms, antiban.random_delay_max_ms) == (1000, 5000)

    def test_equal_bounds_allowed(self) -> None:
        antiban = AntiBanSettings(random_delay_min_ms=2000, random_delay_max_ms=2000)

        assert antiban.random_delay_max_ms == 2000

    def test_inverted_random_delay_bounds_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            AntiBanSettings(random_delay_min_ms=5000, random_delay_max_ms=1000)

        assert "ANTIBAN_RANDOM_DELAY_MIN_MS" in str(exc_info.value)

    def test_inverted_bounds_from_environment_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("ANTIBAN_RANDOM_DELAY_MIN_MS", "9000")
        monkeypatch.setenv("ANTIBAN_RANDOM_DELAY_MAX_MS", "3000")

        with pytest.raises(ValidationError):
            AntiBanSettings()


GROUPS = {
    "APP_": AppSettings,
    "WA_": MessagingSettings,
    "ANTIBAN_": AntiBanSettings,
    "LOG_": LogSettings,
}


def read_env_example() -> dict[str, str]:
    path = Path(__file__).resolve().parents[1] / ".env.example"
    entries = {}
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            key, _, value = line.partition("=")
            entries[key] = value
    return entries


class TestEnvExample:
    def test_lists_every_setting(self) -> None:
        documented = set(read_env_example())
        expected = {
            f"{prefix}{name.upper()}"
            for prefix, model in GROUPS.items()
            for name in model.model_fields
        }

        assert expected - documented == set()

    def test_values_match_code_defaults(self) -> None:
        documented = read_env_example()

        for prefix, model in GROUPS.items():
            for name, field in model.model_fields.items():
                if field.default is None:
                    continue
                raw = documented[f"{prefix}{name.upper()}"]
                if isinstance(field.default, bool):
                    value = raw.lower() == "true"
                else:
                    value = type(field.default)(raw)
                assert value == field.default, f"{prefix}{name.upper()}"
