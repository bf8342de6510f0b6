"""Tests for run settings loading."""

from datetime import datetime, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from pivot_arena.config.settings import PhaseSchedule, RunSettings, load_settings


class TestRunSettings:
    """Tests for RunSettings defaults and validation."""

    def test_defaults(self):
        """Defaults match the documented run shape."""
        s = RunSettings()
        assert s.seed == 42
        assert s.total_rounds == 36
        assert s.phases == PhaseSchedule()

    def test_rejects_unknown_strategy(self):
        """Only proximity, balanced and both are accepted."""
        with pytest.raises(ValidationError):
            RunSettings(sampling_strategy="random")

    def test_naive_start_time_is_utc(self):
        """A naive start time is interpreted as UTC."""
        s = RunSettings(simulation_start_time=datetime(2024, 1, 1, 12, 0))
        assert s.simulation_start_time.tzinfo == timezone.utc

    def test_env_prefix(self, monkeypatch):
        """ARENA_ environment variables populate fields."""
        monkeypatch.setenv("ARENA_RESULTS_DIR", "/tmp/arena-results")
        assert RunSettings().results_dir == Path("/tmp/arena-results")

    def test_start_time_env_name(self, monkeypatch):
        """The start time is read from SIMULATION_START_TIME."""
        monkeypatch.setenv("SIMULATION_START_TIME", "2024-03-01T00:00:00Z")
        s = RunSettings()
        assert s.simulation_start_time == datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestLoadSettings:
    """Tests for YAML plus override merging."""

    def test_yaml_section(self, tmp_path):
        """Values under the arena: section are applied."""
        path = tmp_path / "arena.yaml"
        path.write_text("arena:\n  seed: 7\n  total_rounds: 12\n")
        s = load_settings(path)
        assert s.seed == 7
        assert s.total_rounds == 12

    def test_override_beats_yaml(self, tmp_path):
        """Keyword overrides win over YAML."""
        path = tmp_path / "arena.yaml"
        path.write_text("arena:\n  seed: 7\n")
        assert load_settings(path, seed=99).seed == 99

    def test_nested_phase_schedule(self, tmp_path):
        """Phase boundaries can be set from YAML."""
        path = tmp_path / "arena.yaml"
        path.write_text("arena:\n  phases:\n    phase0_round: 3\n")
        assert load_settings(path).phases.phase0_round == 3

    def test_invalid_yaml_value_rejected(self, tmp_path):
        """Bounds are enforced on YAML input too."""
        path = tmp_path / "arena.yaml"
        path.write_text("arena:\n  total_rounds: 0\n")
        with pytest.raises(ValidationError):
            load_settings(path)
