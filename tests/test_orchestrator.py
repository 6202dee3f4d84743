"""
Tests for profile orchestration, demo content, configuration, file loading,
the dive-computer contract and the command line.
"""

import gzip
from datetime import datetime, timedelta

import pytest

import run_import
from importers.dive_computer import DiveComputerImporter, DiveComputerModel, ImportScope
from importers.loader import importer_kind, load_dives
from dive_logbook import demo_dives, ensure_profile, ensure_profiles, load_effective_config
from dive_logbook.config import DEFAULT_CONFIG
from dive_logbook.errors import SourceUnavailable
from dive_logbook.models import Dive, DiveSample


SIMPLE_UDDF = """<?xml version="1.0" encoding="UTF-8"?>
<uddf><profiledata><repetitiongroup><dive>
  <informationbeforedive><divenumber>9</divenumber></informationbeforedive>
  <samples>
    <waypoint><depth>0</depth><divetime>0</divetime></waypoint>
    <waypoint><depth>14</depth><divetime>300</divetime></waypoint>
    <waypoint><depth>0</depth><divetime>600</divetime></waypoint>
  </samples>
</dive></repetitiongroup></profiledata></uddf>
"""


# ==============================================================================
# ORCHESTRATOR
# ==============================================================================


class TestEnsureProfile:

    def test_dive_with_samples_untouched(self):
        dive = Dive(number=1, samples=[DiveSample(index=0, time=timedelta(0), depth_m=0.0)])
        assert ensure_profile(dive) is dive

    def test_dive_without_samples_gets_profile(self):
        dive = Dive(number=4, duration=timedelta(minutes=40), max_depth_m=18.0, avg_depth_m=11.0)
        result = ensure_profile(dive)

        assert result is not dive
        assert dive.samples == []
        assert result.has_profile
        assert result.duration == result.samples[-1].time == timedelta(minutes=40)
        assert result.max_depth_m == pytest.approx(18.0)
        assert result.id == dive.id

    def test_average_never_exceeds_max(self):
        dive = Dive(number=1, duration=timedelta(minutes=30), max_depth_m=10.0, avg_depth_m=25.0)
        result = ensure_profile(dive)
        assert result.avg_depth_m <= result.max_depth_m

    def test_short_dive_duration_reconciled(self):
        result = ensure_profile(Dive(number=1, duration=timedelta(minutes=3), max_depth_m=5.0))
        assert result.duration == timedelta(minutes=10)

    def test_ensure_profiles_keeps_order(self):
        with_samples = Dive(number=1, samples=[DiveSample(index=0, time=timedelta(0), depth_m=0.0)])
        without = Dive(number=2, duration=timedelta(minutes=20), max_depth_m=9.0)
        result = ensure_profiles([with_samples, without])
        assert result[0] is with_samples
        assert result[1].number == 2
        assert result[1].has_profile


class TestDemoDives:

    def test_two_demo_dives(self):
        now = datetime(2024, 6, 1, 12, 0)
        dives = demo_dives(now=now)

        assert [d.number for d in dives] == [1, 2]
        assert dives[0].start_time == now - timedelta(days=1)
        assert dives[1].start_time == now - timedelta(days=7)
        assert dives[0].duration == timedelta(minutes=46)
        assert dives[1].max_depth_m == pytest.approx(32.0)
        assert all(d.has_profile for d in dives)

    def test_demo_profiles_are_stable(self):
        now = datetime(2024, 6, 1, 12, 0)
        a = [s.depth_m for s in demo_dives(now=now)[1].samples]
        b = [s.depth_m for s in demo_dives(now=now)[1].samples]
        assert a == b


# ==============================================================================
# CONFIGURATION
# ==============================================================================


class TestConfig:

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_effective_config(str(tmp_path / "absent.yaml"))
        assert config["config_source"] == "default"
        assert config["synthetic"] == DEFAULT_CONFIG["synthetic"]

    def test_file_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("synthetic:\n  f_o2: 0.21\nuddf:\n  placeholder_max_depth_m: 12\n")
        config = load_effective_config(str(path))

        assert config["config_source"] == "file"
        assert config["synthetic"]["f_o2"] == pytest.approx(0.21)
        assert config["synthetic"]["min_steps"] == 40
        assert config["uddf"]["placeholder_max_depth_m"] == 12.0
        assert isinstance(config["uddf"]["placeholder_max_depth_m"], float)

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("synthetic:\n  fo2: 0.21\n")
        with pytest.raises(ValueError):
            load_effective_config(str(path))

    def test_defaults_not_mutated(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("synthetic:\n  min_steps: 5\n")
        load_effective_config(str(path))
        assert DEFAULT_CONFIG["synthetic"]["min_steps"] == 40

    def test_repository_config_loads(self):
        config = load_effective_config()
        assert config["config_source"] == "file"
        assert config["synthetic"]["f_o2"] == pytest.approx(0.32)


# ==============================================================================
# LOADER
# ==============================================================================


class TestLoader:

    def test_importer_kind_by_extension(self):
        assert importer_kind("MacDive.sqlite") == "macdive"
        assert importer_kind("backup.DB") == "macdive"
        assert importer_kind("log.macdive") == "macdive"
        assert importer_kind("trip.uddf") == "uddf"
        assert importer_kind("export.xml") == "uddf"
        assert importer_kind("trip.uddf.gz") == "uddf"

    def test_unsupported_extension(self):
        with pytest.raises(ValueError):
            importer_kind("profile.csv")

    def test_load_uddf(self, tmp_path):
        path = tmp_path / "trip.uddf"
        path.write_text(SIMPLE_UDDF, encoding="utf-8")
        dives = load_dives(path)
        assert len(dives) == 1
        assert dives[0].number == 9
        assert dives[0].max_depth_m == pytest.approx(14.0)

    def test_load_gzipped_uddf(self, tmp_path):
        path = tmp_path / "trip.uddf.gz"
        path.write_bytes(gzip.compress(SIMPLE_UDDF.encode("utf-8")))
        dives = load_dives(path)
        assert dives[0].duration == timedelta(minutes=10)

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceUnavailable):
            load_dives(tmp_path / "missing.uddf")


# ==============================================================================
# DIVE COMPUTER
# ==============================================================================


class _FakeInterop:
    is_supported = True

    def __init__(self, dives):
        self.dives = dives
        self.calls = []

    def download(self, computer, scope):
        self.calls.append((computer, scope))
        return self.dives


class TestDiveComputerImporter:

    def test_unsupported_returns_empty(self):
        computer = DiveComputerModel("Shearwater", "Perdix 2")
        assert DiveComputerImporter().import_dives(computer, ImportScope.NEW_ONLY) == []

    def test_supported_interop_is_used(self):
        dive = Dive(number=1)
        interop = _FakeInterop([dive])
        computer = DiveComputerModel("Suunto", "D5", protocol="ble")

        dives = DiveComputerImporter(interop).import_dives(computer)

        assert dives == [dive]
        assert interop.calls == [(computer, ImportScope.ALL_DIVES)]

    def test_model_display(self):
        assert str(DiveComputerModel("Garmin", "Descent Mk3")) == "Garmin Descent Mk3"
        assert DiveComputerModel("Garmin", "Descent Mk3").protocol is None


# ==============================================================================
# COMMAND LINE
# ==============================================================================


class TestCommandLine:

    def test_demo(self, capsys):
        assert run_import.main(["demo"]) == 0
        out = capsys.readouterr().out
        assert "Total dives: 2" in out
        assert "La Jolla Shores" in out

    def test_uddf(self, tmp_path, capsys):
        path = tmp_path / "trip.uddf"
        path.write_text(SIMPLE_UDDF, encoding="utf-8")
        assert run_import.main(["uddf", str(path)]) == 0
        assert "Total dives: 1" in capsys.readouterr().out

    def test_missing_source_reports_error(self, tmp_path, capsys):
        assert run_import.main(["macdive", str(tmp_path / "none.sqlite")]) == 1
        assert "ERROR" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert run_import.main([]) == 1
