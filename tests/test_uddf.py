"""
Tests for the heuristic UDDF importer.

Covers unit detection (explicit and inferred), point discovery regardless of
nesting, de-duplication by time, gas mix tracking and the synthetic fallback
for dives without profile points.
"""

from datetime import datetime, timedelta, timezone

import pytest

from importers.uddf import (
    UDDFImporter,
    _infer_pressure_bar,
    _parse_duration,
    _parse_float,
    _temperature_to_celsius,
)
from dive_logbook.errors import MalformedDocument, FieldUnparsable


def _uddf(dive_body: str, gas_definitions: str = "") -> str:
    """Wrap dive content in a namespaced UDDF document."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<uddf xmlns="http://www.streit.cc/uddf/3.2/" version="3.2.0">
  <gasdefinitions>{gas_definitions}</gasdefinitions>
  <profiledata>
    <repetitiongroup id="rg1">
      <dive id="dive1">
        {dive_body}
      </dive>
    </repetitiongroup>
  </profiledata>
</uddf>"""


def _waypoint(time: str, depth: str, extra: str = "", depth_unit: str = "") -> str:
    unit = f' unit="{depth_unit}"' if depth_unit else ""
    return f"<waypoint><depth{unit}>{depth}</depth><divetime>{time}</divetime>{extra}</waypoint>"


def _import_one(content: str):
    dives = UDDFImporter().import_string(content)
    assert len(dives) == 1
    return dives[0]


NITROX_MIXES = """
    <mix id="ean32"><name>EAN32</name><o2>0.32</o2><n2>0.68</n2></mix>
    <mix id="ean50"><o2>0.50</o2><n2>0.50</n2></mix>
"""


# ==============================================================================
# HEADER
# ==============================================================================


class TestDiveHeader:

    def test_number_and_start_time(self):
        dive = _import_one(_uddf(
            "<informationbeforedive><divenumber>42</divenumber>"
            "<datetime>2024-03-01T09:30:00</datetime></informationbeforedive>"
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "12") + "</samples>"
        ))
        assert dive.number == 42
        assert dive.start_time == datetime(2024, 3, 1, 9, 30)

    def test_utc_timestamp_converted_to_local(self):
        dive = _import_one(_uddf(
            "<informationbeforedive><datetime>2024-03-01T09:30:00Z</datetime></informationbeforedive>"
        ))
        expected = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert dive.start_time == expected
        assert dive.start_time.tzinfo is None

    def test_date_used_when_no_datetime(self):
        dive = _import_one(_uddf("<date>2023-07-14</date>"))
        assert dive.start_time == datetime(2023, 7, 14)

    def test_missing_number_defaults_to_zero(self):
        dive = _import_one(_uddf("<notes>Night dive</notes>"))
        assert dive.number == 0
        assert dive.notes == "Night dive"

    def test_unparsable_start_time_defaults_to_now(self):
        before = datetime.now()
        dive = _import_one(_uddf("<datetime>yesterday</datetime>"))
        assert dive.start_time >= before

    def test_root_dive_element(self):
        content = "<dive><divenumber>3</divenumber>" + _waypoint("0", "0") + _waypoint("30", "5") + "</dive>"
        dive = _import_one(content)
        assert dive.number == 3
        assert len(dive.samples) == 2


# ==============================================================================
# PROFILE POINTS
# ==============================================================================


class TestProfilePoints:

    def test_feet_converted_to_meters(self):
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0") + _waypoint("60", "33", depth_unit="ft") + "</samples>"))
        assert dive.samples[1].depth_m == pytest.approx(10.0584, abs=1e-3)

    def test_unitless_depth_is_meters(self):
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0") + _waypoint("60", "10") + "</samples>"))
        assert dive.samples[1].depth_m == pytest.approx(10.0)

    def test_summary_derived_from_samples(self):
        dive = _import_one(_uddf(
            "<samples>"
            + _waypoint("0", "0") + _waypoint("60", "12") + _waypoint("120", "18") + _waypoint("180", "6")
            + "</samples>"
        ))
        assert dive.duration == timedelta(seconds=180)
        assert dive.max_depth_m == pytest.approx(18.0)
        assert dive.avg_depth_m == pytest.approx(9.0)

    def test_sorted_with_unique_times(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("120", "15") + _waypoint("0", "0") + _waypoint("60", "10") + "</samples>"
        ))
        times = [s.time for s in dive.samples]
        assert times == sorted(times)
        assert len(set(times)) == len(times)
        assert [s.index for s in dive.samples] == [0, 1, 2]

    def test_duplicate_time_keeps_deepest(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "5") + _waypoint("60", "7") + "</samples>"
        ))
        assert len(dive.samples) == 2
        assert dive.samples[1].depth_m == pytest.approx(7.0)

    def test_arbitrary_nesting(self):
        """Points are found by content, not by the element that wraps them."""
        dive = _import_one(_uddf(
            "<track><entry><point><depth>4</depth><time>0:30</time></point></entry>"
            "<entry><point><depth>9</depth><time>1:30</time></point></entry></track>"
        ))
        assert [s.time for s in dive.samples] == [timedelta(seconds=30), timedelta(seconds=90)]
        assert dive.max_depth_m == pytest.approx(9.0)

    def test_malformed_point_skipped(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "n/a") + _waypoint("120", "8") + "</samples>"
        ))
        assert [s.depth_m for s in dive.samples] == [pytest.approx(0.0), pytest.approx(8.0)]

    def test_comma_decimal_separator(self):
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0") + _waypoint("60", "10,5") + "</samples>"))
        assert dive.samples[1].depth_m == pytest.approx(10.5)

    def test_time_in_minutes(self):
        dive = _import_one(_uddf(
            "<samples><waypoint><depth>3</depth><divetime unit=\"min\">2</divetime></waypoint></samples>"
        ))
        assert dive.samples[0].time == timedelta(minutes=2)

    @pytest.mark.parametrize("bad_time", ["NaN", "inf", "-inf", "1e300", "1e300:00"])
    def test_non_finite_or_huge_time_skipped(self, bad_time):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint(bad_time, "20") + _waypoint("120", "8") + "</samples>"
        ))
        assert [s.time for s in dive.samples] == [timedelta(0), timedelta(seconds=120)]
        assert dive.max_depth_m == pytest.approx(8.0)

    def test_nan_depth_skipped(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "nan") + _waypoint("120", "8") + "</samples>"
        ))
        assert len(dive.samples) == 2
        assert dive.avg_depth_m == pytest.approx(4.0)


# ==============================================================================
# MEASURED CHANNELS
# ==============================================================================


class TestMeasuredChannels:

    def test_unitless_kelvin_temperature(self):
        extra = "<temperature>293.15</temperature>"
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0", extra) + "</samples>"))
        assert dive.samples[0].temperature_c == pytest.approx(20.0)

    def test_fahrenheit_temperature(self):
        extra = '<temperature unit="F">50</temperature>'
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0", extra) + "</samples>"))
        assert dive.samples[0].temperature_c == pytest.approx(10.0)

    def test_unset_is_distinct_from_zero(self):
        dive = _import_one(_uddf(
            "<samples>"
            + _waypoint("0", "0", '<temperature unit="C">0</temperature>')
            + _waypoint("60", "10")
            + "</samples>"
        ))
        assert dive.samples[0].temperature_c == 0.0
        assert dive.samples[1].temperature_c is None
        assert dive.samples[1].tank_pressure_bar is None

    def test_pressure_unit_inference(self):
        dive = _import_one(_uddf(
            "<samples>"
            + _waypoint("0", "0", "<tankpressure>2900</tankpressure>")
            + _waypoint("60", "10", "<tankpressure>210</tankpressure>")
            + _waypoint("120", "10", "<tankpressure>18000000</tankpressure>")
            + "</samples>"
        ))
        pressures = [s.tank_pressure_bar for s in dive.samples]
        assert pressures[0] == pytest.approx(199.95, abs=0.01)
        assert pressures[1] == pytest.approx(210.0)
        assert pressures[2] == pytest.approx(180.0)

    def test_explicit_pressure_units(self):
        dive = _import_one(_uddf(
            "<samples>"
            + _waypoint("0", "0", '<tankpressure unit="psi">3000</tankpressure>')
            + _waypoint("60", "10", '<tankpressure unit="kPa">20000</tankpressure>')
            + "</samples>"
        ))
        assert dive.samples[0].tank_pressure_bar == pytest.approx(206.84, abs=0.01)
        assert dive.samples[1].tank_pressure_bar == pytest.approx(200.0)

    def test_deco_channels(self):
        extra = (
            "<ndl>0</ndl><tts>14</tts><decodepth unit=\"ft\">20</decodepth>"
            "<decotime>3</decotime><ascentrate unit=\"m/min\">9</ascentrate>"
        )
        dive = _import_one(_uddf("<samples>" + _waypoint("60", "30", extra) + "</samples>"))
        sample = dive.samples[0]
        assert sample.ndl_minutes == 0.0
        assert sample.tts_minutes == pytest.approx(14.0)
        assert sample.deco_stop_depth_m == pytest.approx(6.096, abs=1e-3)
        assert sample.deco_stop_minutes == pytest.approx(3.0)
        assert sample.ascent_rate_mps == pytest.approx(0.15)

    def test_unparsable_tag_falls_through_to_alternate(self):
        extra = "<ndt>--</ndt><ndl>12</ndl><decotime>n/a</decotime><stopminutes>2</stopminutes>"
        dive = _import_one(_uddf("<samples>" + _waypoint("60", "30", extra) + "</samples>"))
        assert dive.samples[0].ndl_minutes == pytest.approx(12.0)
        assert dive.samples[0].deco_stop_minutes == pytest.approx(2.0)

    def test_non_finite_channel_is_unset(self):
        extra = "<temperature unit=\"C\">inf</temperature><tankpressure>NaN</tankpressure>"
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0", extra) + "</samples>"))
        assert dive.samples[0].temperature_c is None
        assert dive.samples[0].tank_pressure_bar is None

    def test_consumption_channels(self):
        extra = '<rmv unit="cfm">0.6</rmv><sac unit="psi/min">29</sac>'
        dive = _import_one(_uddf("<samples>" + _waypoint("60", "10", extra) + "</samples>"))
        assert dive.samples[0].rmv_lpm == pytest.approx(16.99, abs=0.01)
        assert dive.samples[0].sac_bar_per_min == pytest.approx(2.0, abs=0.01)


# ==============================================================================
# GAS MIXES
# ==============================================================================


class TestGasMixes:

    def test_first_mix_is_the_starting_gas(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "10") + "</samples>",
            NITROX_MIXES,
        ))
        assert dive.samples[0].gas == "EAN32"

    def test_ppo2_derived_from_current_mix(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("60", "10") + "</samples>",
            NITROX_MIXES,
        ))
        assert dive.samples[0].ppo2 == pytest.approx(0.64)

    def test_recorded_ppo2_wins(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("60", "10", "<ppo2>1.1</ppo2>") + "</samples>",
            NITROX_MIXES,
        ))
        assert dive.samples[0].ppo2 == pytest.approx(1.1)

    def test_switchmix_is_case_insensitive_and_sticky(self):
        dive = _import_one(_uddf(
            "<samples>"
            + _waypoint("0", "0")
            + _waypoint("600", "21", '<switchmix ref="EAN50"/>')
            + _waypoint("660", "18")
            + "</samples>",
            NITROX_MIXES,
        ))
        gases = [s.gas for s in dive.samples]
        assert gases == ["EAN32", "50% O2 / 50% N2", "50% O2 / 50% N2"]
        assert dive.samples[2].ppo2 == pytest.approx(0.5 * 2.8)

    def test_unknown_switchmix_ref_keeps_gas(self):
        dive = _import_one(_uddf(
            "<samples>" + _waypoint("0", "0") + _waypoint("60", "10", '<switchmix ref="trimix"/>') + "</samples>",
            NITROX_MIXES,
        ))
        assert dive.samples[1].gas == "EAN32"

    def test_gas_name_on_point(self):
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0", "<gasname>Air</gasname>") + "</samples>"))
        assert dive.samples[0].gas == "Air"

    def test_no_mixes_leaves_gas_unset(self):
        dive = _import_one(_uddf("<samples>" + _waypoint("0", "0") + "</samples>"))
        assert dive.samples[0].gas is None
        assert dive.samples[0].ppo2 is None


# ==============================================================================
# TANKS AND FALLBACKS
# ==============================================================================


class TestTankAndFallback:

    def test_small_tank_volume_scaled(self):
        dive = _import_one(_uddf(
            "<tankdata><tankvolume>0.012</tankvolume></tankdata>"
            "<samples>" + _waypoint("0", "0") + "</samples>",
            NITROX_MIXES,
        ))
        assert len(dive.tanks) == 1
        tank = dive.tanks[0]
        assert tank.tank_size_liters == pytest.approx(12.0)
        assert tank.tank_name == "Tank 1"
        assert tank.o2_percent == pytest.approx(32.0)

    def test_liters_tank_volume_kept(self):
        dive = _import_one(_uddf("<tankdata><tankvolume>11.1</tankvolume></tankdata>"))
        assert dive.tanks[0].tank_size_liters == pytest.approx(11.1)
        assert dive.tanks[0].o2_percent is None

    def test_no_points_gets_synthetic_profile(self):
        dive = _import_one(_uddf("<informationbeforedive><divenumber>5</divenumber></informationbeforedive>"))
        assert dive.has_profile
        assert dive.duration == timedelta(minutes=30)
        assert dive.max_depth_m == pytest.approx(18.0)
        assert dive.avg_depth_m == pytest.approx(10.0)
        assert max(s.depth_m for s in dive.samples) == pytest.approx(18.0)

    def test_placeholders_from_config(self):
        config = {"uddf": {
            "placeholder_duration_min": 45.0,
            "placeholder_max_depth_m": 25.0,
            "placeholder_avg_depth_m": 15.0,
        }}
        dives = UDDFImporter(config=config).import_string(_uddf(""))
        assert dives[0].duration == timedelta(minutes=45)
        assert dives[0].max_depth_m == pytest.approx(25.0)

    def test_multiple_dives(self):
        content = _uddf("").replace(
            "</repetitiongroup>",
            '<dive id="dive2"><divenumber>2</divenumber></dive></repetitiongroup>',
        )
        dives = UDDFImporter().import_string(content)
        assert len(dives) == 2
        assert dives[1].number == 2

    def test_malformed_document(self):
        with pytest.raises(MalformedDocument):
            UDDFImporter().import_string("<uddf><dive></uddf>")

    def test_import_file(self, tmp_path):
        path = tmp_path / "log.uddf"
        path.write_bytes(_uddf("<samples>" + _waypoint("0", "0") + _waypoint("60", "9") + "</samples>").encode("utf-8"))
        dives = UDDFImporter().import_file(path)
        assert dives[0].max_depth_m == pytest.approx(9.0)


# ==============================================================================
# HELPERS
# ==============================================================================


class TestHelpers:

    def test_duration_formats(self):
        assert _parse_duration("90") == timedelta(seconds=90)
        assert _parse_duration("1:30") == timedelta(seconds=90)
        assert _parse_duration("1:02:03") == timedelta(hours=1, minutes=2, seconds=3)
        with pytest.raises(FieldUnparsable):
            _parse_duration("1:2:3:4")

    @pytest.mark.parametrize("raw", ["nan", "inf", "1e300", "1:nan"])
    def test_duration_rejects_non_finite_and_overflow(self, raw):
        with pytest.raises(FieldUnparsable):
            _parse_duration(raw)

    def test_parse_float_rejects_non_finite(self):
        assert _parse_float("12,5") == pytest.approx(12.5)
        for raw in ("nan", "Infinity", "-inf"):
            with pytest.raises(FieldUnparsable):
                _parse_float(raw)

    def test_pressure_inference_boundaries(self):
        assert _infer_pressure_bar(200.0) == pytest.approx(200.0)
        assert _infer_pressure_bar(300.0) == pytest.approx(20.68, abs=0.01)
        assert _infer_pressure_bar(6000.0) == pytest.approx(6000.0)

    def test_temperature_without_unit_below_kelvin_range(self):
        assert _temperature_to_celsius(24.0, None) == pytest.approx(24.0)
