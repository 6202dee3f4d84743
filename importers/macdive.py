"""
MacDive importer: resolves the store's primary-key joins into Dive aggregates.

Loading happens in two phases. All rows are first read into dictionaries
keyed by source primary key; dives are only built once every relation has
been resolved against those maps. MacDive stores no sample series, so every
dive leaves here with a synthetic profile.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Union

from dive_logbook.errors import DanglingReference
from dive_logbook.models import Buddy, Dive, DiveSite, TankUsage
from dive_logbook.orchestrator import ensure_profiles
from dive_logbook.synthetic import SyntheticProfileGenerator

from .macdive_schema import (
    BuddyRow,
    DiveRow,
    MacDiveSchemaReader,
    SiteRow,
    TankGasRow,
)

logger = logging.getLogger(__name__)

# Seconds between the Unix epoch and Mac absolute time (2001-01-01 00:00 UTC)
MAC_EPOCH_OFFSET = 978307200


def from_mac_absolute_time(seconds: Optional[float]) -> Optional[datetime]:
    """Convert Mac absolute time to a naive local datetime."""
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(MAC_EPOCH_OFFSET + seconds)
    except (OverflowError, OSError, ValueError) as e:
        logger.debug(f"Ignoring out-of-range date {seconds!r}: {e}")
        return None


def _seconds(value: Optional[float]) -> Optional[timedelta]:
    if value is None:
        return None
    try:
        return timedelta(seconds=max(0.0, value))
    except (OverflowError, ValueError) as e:
        logger.debug(f"Ignoring out-of-range duration {value!r}: {e}")
        return None


def _non_negative(value: Optional[float]) -> float:
    return max(0.0, value or 0.0)


def _site_from_row(row: SiteRow) -> DiveSite:
    return DiveSite(
        name=row.name or "",
        location=row.location,
        country=row.country,
        latitude=row.latitude,
        longitude=row.longitude,
        water_type=row.water_type,
        difficulty=row.difficulty,
        altitude_m=row.altitude,
        notes=row.notes,
    )


def _buddy_from_row(row: BuddyRow) -> Buddy:
    return Buddy(name=row.name or "", external_id=row.uuid)


def _tank_from_row(row: TankGasRow) -> TankUsage:
    return TankUsage(
        sort_order=row.sort_order or 0,
        is_double=bool(row.is_double),
        duration=_seconds(row.duration),
        supply_type=row.supply_type,
        air_start_psi=row.air_start,
        air_end_psi=row.air_end,
        external_id=row.uuid,
        tank_size_liters=row.tank_size,
        working_pressure_psi=row.working_pressure,
        tank_name=row.tank_name,
        tank_type=row.tank_type,
        o2_percent=row.oxygen,
        he_percent=row.helium,
        min_ppo2=row.min_ppo2,
        max_ppo2=row.max_ppo2,
    )


@dataclass
class _Arena:
    """Rows of one store, keyed by primary key."""

    sites: Dict[int, DiveSite] = field(default_factory=dict)
    buddies: Dict[int, Buddy] = field(default_factory=dict)
    tags: Dict[int, str] = field(default_factory=dict)
    tanks: Dict[int, List[TankUsage]] = field(default_factory=lambda: defaultdict(list))
    dives: Dict[int, DiveRow] = field(default_factory=dict)
    dive_buddies: Dict[int, List[Buddy]] = field(default_factory=lambda: defaultdict(list))
    dive_tags: Dict[int, List[str]] = field(default_factory=lambda: defaultdict(list))

    def buddy(self, pk: int) -> Buddy:
        if pk not in self.buddies:
            raise DanglingReference('ZBUDDY', pk)
        return self.buddies[pk]

    def tag(self, pk: int) -> str:
        if pk not in self.tags:
            raise DanglingReference('ZTAG', pk)
        return self.tags[pk]

    def require_dive(self, pk: int) -> None:
        if pk not in self.dives:
            raise DanglingReference('ZDIVE', pk)


class MacDiveImporter:
    """
    Import every dive from a MacDive SQLite store.

    Example:
        importer = MacDiveImporter("MacDive.sqlite")
        dives = importer.import_all()
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        generator: Optional[SyntheticProfileGenerator] = None,
    ):
        self.db_path = Path(db_path)
        self.generator = generator or SyntheticProfileGenerator()

    def import_all(self) -> List[Dive]:
        """
        Read the store and return its dives with relations resolved.

        Returns:
            Dives in ZDIVE row order, each with a synthetic profile

        Raises:
            SourceUnavailable: if the store cannot be opened or queried
        """
        with MacDiveSchemaReader(self.db_path) as reader:
            arena = self._load(reader)

        dives = [self._build_dive(row, arena) for row in arena.dives.values()]
        logger.info(
            f"Imported {len(dives)} dives from {self.db_path.name} "
            f"({len(arena.sites)} sites, {len(arena.buddies)} buddies, {len(arena.tags)} tags)"
        )
        return ensure_profiles(dives, self.generator)

    def _load(self, reader: MacDiveSchemaReader) -> _Arena:
        arena = _Arena()

        for site in reader.sites():
            arena.sites[site.pk] = _site_from_row(site)
        for buddy in reader.buddies():
            arena.buddies[buddy.pk] = _buddy_from_row(buddy)
        for tag in reader.tags():
            arena.tags[tag.pk] = tag.name or ""
        for tank in reader.tank_usage():
            arena.tanks[tank.dive_pk].append(_tank_from_row(tank))
        for dive in reader.dives():
            arena.dives[dive.pk] = dive

        for link in reader.buddy_links():
            try:
                arena.require_dive(link.dive_pk)
                buddy = arena.buddy(link.other_pk)
            except DanglingReference as e:
                logger.debug(f"Skipping buddy link: {e}")
                continue
            attached = arena.dive_buddies[link.dive_pk]
            if all(b is not buddy for b in attached):
                attached.append(buddy)

        for link in reader.tag_links():
            try:
                arena.require_dive(link.dive_pk)
                tag = arena.tag(link.other_pk)
            except DanglingReference as e:
                logger.debug(f"Skipping tag link: {e}")
                continue
            tags = arena.dive_tags[link.dive_pk]
            if tag.strip() and tag not in tags:
                tags.append(tag)

        return arena

    def _build_dive(self, row: DiveRow, arena: _Arena) -> Dive:
        site = None
        if row.site_pk is not None:
            site = arena.sites.get(row.site_pk)
            if site is None:
                logger.debug(f"Dive {row.pk}: {DanglingReference('ZDIVESITE', row.site_pk)}")

        tanks = sorted(arena.tanks.get(row.pk, []), key=lambda t: t.sort_order)

        return Dive(
            number=row.dive_number or 0,
            start_time=from_mac_absolute_time(row.raw_date),
            duration=_seconds(row.total_duration) or timedelta(0),
            max_depth_m=_non_negative(row.max_depth),
            avg_depth_m=_non_negative(row.average_depth),
            notes=row.notes or "",
            site=site,
            buddies=list(arena.dive_buddies.get(row.pk, [])),
            tags=list(arena.dive_tags.get(row.pk, [])),
            tanks=tanks,
            repetitive_number=row.repetitive_dive_number,
            surface_interval=_seconds(row.surface_interval),
            air_temp_c=row.air_temp,
            water_temp_high_c=row.temp_high,
            water_temp_low_c=row.temp_low,
            weather=row.weather,
            current=row.current,
            surface_conditions=row.surface_conditions,
            visibility=row.visibility,
            entry_type=row.entry_type,
            is_decompression=bool(row.decompression),
            cns_percent=row.cns,
            deco_model=row.deco_model,
            gas_model=row.gas_model,
            sample_interval=_seconds(row.sample_interval),
            boat_name=row.boat_name,
            boat_captain=row.boat_captain,
            divemaster=row.divemaster,
            dive_operator=row.dive_operator,
            rating=row.rating,
        )
