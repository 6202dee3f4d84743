"""
Heuristic UDDF importer.

UDDF is used loosely by dive computers and logging apps: namespaces come and
go, units are sometimes declared and sometimes not, and profile points are
nested differently by each producer. Instead of following the schema, this
importer searches the tree by local element name and treats any element
containing both a depth and a time element as a profile point.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from dive_logbook import units
from dive_logbook.config import DEFAULT_CONFIG
from dive_logbook.errors import FieldUnparsable
from dive_logbook.models import Dive, DiveSample, TankUsage
from dive_logbook.orchestrator import ensure_profile
from dive_logbook.synthetic import SyntheticProfileGenerator
from importers.xmltree import XmlNode, parse_document

logger = logging.getLogger(__name__)

TIME_TAGS = ('time', 'divetime', 'duration')

# Unitless pressures: above this many Pa, between these psi, otherwise bar
PASCAL_INFERENCE_MIN = 50_000.0
PSI_INFERENCE_MIN = 300.0
PSI_INFERENCE_MAX = 6_000.0

# Unitless temperatures above this are taken as Kelvin
KELVIN_INFERENCE_MIN = 150.0

# tankvolume values at or below this are multiplied by 1000
TANK_VOLUME_SCALE_MAX = 5.0


@dataclass(frozen=True)
class MixInfo:
    """A gas mix from the document's mix definitions."""

    label: str
    f_o2: Optional[float] = None


def _parse_float(raw: Optional[str]) -> float:
    """
    Parse a decimal number, accepting a comma as decimal separator.

    Raises:
        FieldUnparsable: if raw is blank, not a number or not finite
    """
    if raw is None or not raw.strip():
        raise FieldUnparsable("empty value")
    text = raw.strip()
    try:
        value = float(text)
    except ValueError:
        try:
            value = float(text.replace(',', '.'))
        except ValueError:
            raise FieldUnparsable(f"not a number: {text!r}")
    if not math.isfinite(value):
        raise FieldUnparsable(f"not a finite number: {text!r}")
    return value


def _optional_float(raw: Optional[str]) -> Optional[float]:
    try:
        return _parse_float(raw)
    except FieldUnparsable as e:
        if raw is not None:
            logger.debug(f"Ignoring unparsable field: {e}")
        return None


def _unit_of(node: XmlNode) -> Optional[str]:
    unit = node.attribute('unit')
    if unit is None:
        return None
    return unit.strip().lower()


def _parse_duration(raw: str, unit: Optional[str] = None) -> timedelta:
    """
    Parse an elapsed time.

    Supports formats:
    - "MM:SS"
    - "HH:MM:SS"
    - Plain numbers, in seconds unless unit says minutes

    Raises:
        FieldUnparsable: if the value cannot be interpreted
    """
    raw = raw.strip()

    if ':' in raw:
        parts = raw.split(':')
        try:
            values = [float(p) for p in parts]
        except ValueError:
            raise FieldUnparsable(f"bad duration: {raw!r}")
        if len(values) not in (2, 3):
            raise FieldUnparsable(f"bad duration: {raw!r}")
        # mm:ss or hh:mm:ss
        hours, minutes, seconds = ([0.0] + values)[-3:]
        try:
            return timedelta(hours=hours, minutes=minutes, seconds=seconds)
        except (OverflowError, ValueError):
            raise FieldUnparsable(f"duration out of range: {raw!r}")

    value = _parse_float(raw)
    try:
        if unit in ('min', 'mins', 'minute', 'minutes'):
            return timedelta(minutes=value)
        # seconds, unknown units and no unit at all
        return timedelta(seconds=value)
    except (OverflowError, ValueError):
        raise FieldUnparsable(f"duration out of range: {raw!r}")


def _depth_to_meters(value: float, unit: Optional[str]) -> float:
    if unit in ('ft', 'feet'):
        return units.feet_to_meters(value)
    if unit in ('cm', 'centimeter', 'centimeters'):
        return value / 100.0
    return value


def _temperature_to_celsius(value: float, unit: Optional[str]) -> float:
    if unit is None:
        # Producers that omit the unit usually write Kelvin, as UDDF mandates
        return units.kelvin_to_celsius(value) if value > KELVIN_INFERENCE_MIN else value
    if unit in ('f', '°f', 'fahrenheit'):
        return units.fahrenheit_to_celsius(value)
    if unit in ('k', '°k', 'kelvin'):
        return units.kelvin_to_celsius(value)
    return value


def _pressure_to_bar(value: float, unit: Optional[str]) -> float:
    if unit == 'psi':
        return units.psi_to_bar(value)
    if unit == 'kpa':
        return units.kpa_to_bar(value)
    if unit in ('pa', 'pascal', 'pascals'):
        return units.pascal_to_bar(value)
    if unit == 'mbar':
        return units.mbar_to_bar(value)
    if unit in ('bar', 'bars', 'bara'):
        return value
    return _infer_pressure_bar(value)


def _infer_pressure_bar(value: float) -> float:
    """Guess the unit of a pressure that came without one."""
    if value > PASCAL_INFERENCE_MIN:
        return units.pascal_to_bar(value)
    if PSI_INFERENCE_MIN <= value < PSI_INFERENCE_MAX:
        return units.psi_to_bar(value)
    return value


def _ascent_rate_to_mps(value: float, unit: Optional[str]) -> float:
    if unit == 'ft/s':
        return units.feet_per_second_to_mps(value)
    if unit == 'ft/min':
        return units.feet_per_minute_to_mps(value)
    if unit == 'm/min':
        return units.meters_per_minute_to_mps(value)
    return value


def _format_fraction(label: str, fraction: float) -> str:
    percent = f"{fraction * 100:.1f}".rstrip('0').rstrip('.')
    return f"{percent}% {label}"


def _parse_datetime(raw: str) -> datetime:
    """
    Parse an ISO-8601 timestamp into naive local time.

    Raises:
        FieldUnparsable: if raw is not ISO-8601
    """
    text = raw.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise FieldUnparsable(f"bad timestamp: {raw!r}")
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


class _MeasuredField:
    """Read the first element among tags and convert it with its unit."""

    def __init__(self, tags, convert=None):
        self.tags = tags
        self.convert = convert

    def read(self, point: XmlNode) -> Optional[float]:
        for tag in self.tags:
            node = point.find_first(tag)
            if node is None:
                continue
            value = _optional_float(node.text)
            if value is None:
                continue
            if self.convert is None:
                return value
            return self.convert(value, _unit_of(node))
        return None


def _sac_to_bar_per_min(value: float, unit: Optional[str]) -> float:
    if unit in ('psi/min', 'psimin'):
        return units.psi_to_bar(value)
    return value


def _rmv_to_lpm(value: float, unit: Optional[str]) -> float:
    if unit == 'cfm':
        return units.cuft_to_liters(value)
    return value


def _stop_depth_to_meters(value: float, unit: Optional[str]) -> float:
    if unit in ('ft', 'feet'):
        return units.feet_to_meters(value)
    return value


TEMPERATURE = _MeasuredField(('temperature', 'temp'), _temperature_to_celsius)
TANK_PRESSURE = _MeasuredField(('pressure', 'tankpressure'), _pressure_to_bar)
RMV = _MeasuredField(('rmv',), _rmv_to_lpm)
SAC = _MeasuredField(('sac',), _sac_to_bar_per_min)
PPO2 = _MeasuredField(('ppo2',))
NDL = _MeasuredField(('ndt', 'ndl'))
TTS = _MeasuredField(('tts',))
ASCENT_RATE = _MeasuredField(('ascent', 'ascentrate'), _ascent_rate_to_mps)
DECO_STOP_DEPTH = _MeasuredField(('decodepth', 'stopdepth'), _stop_depth_to_meters)
DECO_STOP_MINUTES = _MeasuredField(('decotime', 'stopminutes'))


class UDDFImporter:
    """Import dives from UDDF-like XML, tolerating producer quirks."""

    def __init__(
        self,
        config: Optional[dict] = None,
        generator: Optional[SyntheticProfileGenerator] = None,
    ):
        config = config or DEFAULT_CONFIG
        placeholder = config.get('uddf', DEFAULT_CONFIG['uddf'])
        self.placeholder_duration = timedelta(minutes=placeholder['placeholder_duration_min'])
        self.placeholder_max_depth = placeholder['placeholder_max_depth_m']
        self.placeholder_avg_depth = placeholder['placeholder_avg_depth_m']
        self.generator = generator or SyntheticProfileGenerator.from_config(config)

    def import_file(self, filepath: Union[str, Path]) -> List[Dive]:
        """
        Import a UDDF file.

        The raw bytes go to the XML parser so that encoding declarations
        (UTF-8 or UTF-16) are honoured.
        """
        return self.import_string(Path(filepath).read_bytes())

    def import_string(self, content: Union[str, bytes]) -> List[Dive]:
        """
        Import UDDF content.

        Args:
            content: XML text

        Returns:
            One Dive per <dive> element, each with a non-empty sample series

        Raises:
            MalformedDocument: if the content is not well-formed XML
        """
        root = parse_document(content)

        # Mixes usually live in <gasdefinitions>, outside the dives
        document_mixes = build_mix_lookup(root)

        dives = [self._read_dive(node, document_mixes) for node in self._dive_nodes(root)]

        logger.info(f"Imported {len(dives)} dives from UDDF")
        return dives

    @staticmethod
    def _dive_nodes(root: XmlNode) -> List[XmlNode]:
        nodes = list(root.find_all('dive'))
        if root.name == 'dive':
            nodes.insert(0, root)
        return nodes

    def _read_dive(self, node: XmlNode, document_mixes: Dict[str, MixInfo]) -> Dive:
        dive = Dive(
            number=self._read_dive_number(node),
            start_time=self._read_start_time(node),
            notes=node.first_text('notes') or "",
        )

        # Mixes defined inside the dive take precedence and come first
        mixes = build_mix_lookup(node)
        for mix_id, mix in document_mixes.items():
            mixes.setdefault(mix_id, mix)
        samples = read_samples(node, mixes)

        if samples:
            depths = [s.depth_m for s in samples]
            dive.samples = samples
            dive.duration = samples[-1].time
            dive.max_depth_m = max(depths)
            dive.avg_depth_m = sum(depths) / len(depths)
        else:
            logger.warning(f"No profile points in UDDF dive {dive.number}; using a synthetic profile")
            dive.duration = self.placeholder_duration
            dive.max_depth_m = self.placeholder_max_depth
            dive.avg_depth_m = self.placeholder_avg_depth

        tank = read_tank(node, mixes)
        if tank is not None:
            dive.tanks.append(tank)

        return ensure_profile(dive, self.generator)

    @staticmethod
    def _read_dive_number(node: XmlNode) -> int:
        raw = node.first_text('divenumber')
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.debug(f"Ignoring unparsable dive number {raw!r}")
            return 0

    @staticmethod
    def _read_start_time(node: XmlNode) -> datetime:
        # First <datetime> anywhere below the dive, else the first <date>.
        # Nested elements with their own dates can win over the dive's own.
        raw = node.first_text('datetime', 'date')
        if raw:
            try:
                return _parse_datetime(raw)
            except FieldUnparsable as e:
                logger.debug(f"Ignoring dive start time: {e}")
        return datetime.now()


def build_mix_lookup(dive: XmlNode) -> Dict[str, MixInfo]:
    """
    Map mix ids (case-insensitive) to a display label and O2 fraction.

    The label is the mix's <name> if present, otherwise built from the o2, he
    and n2 fractions ("32% O2 / 68% N2"), otherwise the raw id.
    """
    lookup: Dict[str, MixInfo] = {}

    for mix in dive.find_all('mix'):
        mix_id = (mix.attribute('id') or '').strip()
        if not mix_id:
            continue

        name = mix.first_text('name')
        f_o2 = _optional_float(mix.first_text('o2'))
        f_he = _optional_float(mix.first_text('he'))
        f_n2 = _optional_float(mix.first_text('n2'))

        if not name:
            parts = [
                _format_fraction(label, fraction)
                for label, fraction in (('O2', f_o2), ('He', f_he), ('N2', f_n2))
                if fraction is not None
            ]
            name = " / ".join(parts)

        lookup[mix_id.lower()] = MixInfo(label=name or mix_id, f_o2=f_o2)

    return lookup


def find_point_nodes(dive: XmlNode) -> List[XmlNode]:
    """
    Find every element below dive that looks like a profile point.

    A point is any element whose descendants include a depth element and a
    time element. Containers of points (e.g. <samples>) match as well; the
    duplicates they produce are removed by time later.
    """
    points = []
    for node in dive.descendants():
        names = {d.name for d in node.descendants()}
        if 'depth' in names and names.intersection(TIME_TAGS):
            points.append(node)
    return points


def _own_switchmix(point: XmlNode, point_ids: Set[int]) -> Optional[XmlNode]:
    """First <switchmix> below point that does not belong to a nested point."""
    stack = list(reversed(point.children))
    while stack:
        node = stack.pop()
        if id(node) in point_ids:
            continue
        if node.name == 'switchmix':
            return node
        stack.extend(reversed(node.children))
    return None


def read_samples(dive: XmlNode, mixes: Dict[str, MixInfo]) -> List[DiveSample]:
    """
    Read, convert and de-duplicate the profile points of one dive.

    Returns:
        Samples sorted by time with unique times; at a repeated time the
        deepest point wins. Indexes are renumbered from zero.
    """
    fallback = next(iter(mixes.values()), None)
    current_gas = fallback.label if fallback else None
    current_f_o2 = fallback.f_o2 if fallback else None

    by_time: Dict[timedelta, DiveSample] = {}

    points = find_point_nodes(dive)
    point_ids = {id(p) for p in points}

    for point in points:
        depth_node = point.find_first('depth')
        time_node = point.find_first(*TIME_TAGS)
        if depth_node is None or time_node is None:
            continue

        try:
            depth_m = _depth_to_meters(_parse_float(depth_node.text), _unit_of(depth_node))
            time = _parse_duration(time_node.text, _unit_of(time_node))
        except FieldUnparsable as e:
            logger.debug(f"Skipping malformed point: {e}")
            continue

        switch = _own_switchmix(point, point_ids)
        ref = (switch.attribute('ref') or '').strip().lower() if switch is not None else ''
        if ref in mixes:
            current_gas = mixes[ref].label
            current_f_o2 = mixes[ref].f_o2

        gas = point.first_text('gas', 'gasname', 'mix') or current_gas

        ppo2 = PPO2.read(point)
        if ppo2 is None and current_f_o2 is not None:
            ppo2 = current_f_o2 * units.ambient_pressure_ata(depth_m)

        sample = DiveSample(
            index=0,
            time=time,
            depth_m=depth_m,
            temperature_c=TEMPERATURE.read(point),
            tank_pressure_bar=TANK_PRESSURE.read(point),
            rmv_lpm=RMV.read(point),
            sac_bar_per_min=SAC.read(point),
            ppo2=ppo2,
            ndl_minutes=NDL.read(point),
            tts_minutes=TTS.read(point),
            ascent_rate_mps=ASCENT_RATE.read(point),
            deco_stop_depth_m=DECO_STOP_DEPTH.read(point),
            deco_stop_minutes=DECO_STOP_MINUTES.read(point),
            gas=gas,
        )

        existing = by_time.get(time)
        # Deepest wins; on a tie the later (innermost) node replaces its container
        if existing is None or sample.depth_m >= existing.depth_m:
            by_time[time] = sample

    ordered = sorted(by_time.values(), key=lambda s: s.time)
    return [replace(s, index=i) for i, s in enumerate(ordered)]


def read_tank(dive: XmlNode, mixes: Dict[str, MixInfo]) -> Optional[TankUsage]:
    """
    Build a single TankUsage from the first <tankvolume>, if any.

    Volumes <= 5 are multiplied by 1000, larger values are taken as liters.
    The intended source unit of small values is unknown; the rule is kept
    as-is until a producer documents it.
    """
    raw = dive.first_text('tankvolume')
    volume = _optional_float(raw)
    if volume is None:
        return None

    liters = volume * 1000.0 if volume <= TANK_VOLUME_SCALE_MAX else volume
    first_mix = next(iter(mixes.values()), None)
    o2_percent = None
    if first_mix is not None and first_mix.f_o2 is not None:
        o2_percent = first_mix.f_o2 * 100.0

    return TankUsage(
        sort_order=0,
        tank_size_liters=liters,
        tank_name="Tank 1",
        o2_percent=o2_percent,
    )
