"""
Read-only access to a MacDive (Core Data) SQLite store.

Runs fixed projection queries against the store's tables and yields typed
rows. Nothing here links rows together; MacDiveImporter does that.

Core Data naming: every table has an integer primary key Z_PK; relationship
columns hold the Z_PK of the related row; join tables for many-to-many
relations are named Z_<n>RELATIONSHIP<NAME>.
"""

import logging
import math
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from dive_logbook.errors import FieldUnparsable, SourceUnavailable

logger = logging.getLogger(__name__)


# ----------------- ROW TYPES -----------------


@dataclass(frozen=True)
class SiteRow:
    pk: int
    name: Optional[str]
    location: Optional[str]
    country: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    water_type: Optional[str]
    difficulty: Optional[str]
    altitude: Optional[float]
    notes: Optional[str]


@dataclass(frozen=True)
class BuddyRow:
    pk: int
    name: Optional[str]
    uuid: Optional[str]


@dataclass(frozen=True)
class TagRow:
    pk: int
    name: Optional[str]


@dataclass(frozen=True)
class TankGasRow:
    """One ZTANKANDGAS row joined with its ZTANK and ZGAS rows."""

    dive_pk: int
    is_double: Optional[int]
    sort_order: Optional[int]
    duration: Optional[float]
    supply_type: Optional[str]
    air_end: Optional[float]
    air_start: Optional[float]
    uuid: Optional[str]
    tank_size: Optional[float]
    working_pressure: Optional[float]
    tank_name: Optional[str]
    tank_type: Optional[str]
    oxygen: Optional[float]
    helium: Optional[float]
    min_ppo2: Optional[float]
    max_ppo2: Optional[float]


@dataclass(frozen=True)
class DiveRow:
    pk: int
    dive_number: Optional[int]
    raw_date: Optional[float]  # seconds since 2001-01-01 UTC
    total_duration: Optional[float]  # seconds
    max_depth: Optional[float]
    average_depth: Optional[float]
    site_pk: Optional[int]
    repetitive_dive_number: Optional[int]
    surface_interval: Optional[float]  # seconds
    air_temp: Optional[float]
    temp_high: Optional[float]
    temp_low: Optional[float]
    weather: Optional[str]
    current: Optional[str]
    surface_conditions: Optional[str]
    visibility: Optional[str]
    entry_type: Optional[str]
    decompression: Optional[int]
    cns: Optional[float]
    deco_model: Optional[str]
    gas_model: Optional[str]
    sample_interval: Optional[float]  # seconds
    boat_captain: Optional[str]
    boat_name: Optional[str]
    divemaster: Optional[str]
    dive_operator: Optional[str]
    rating: Optional[float]
    notes: Optional[str]


@dataclass(frozen=True)
class LinkRow:
    """One row of a many-to-many join table."""

    dive_pk: int
    other_pk: int


# ----------------- QUERIES -----------------

SITES_SQL = """
    SELECT Z_PK, ZNAME, ZLOCATION, ZCOUNTRY, ZGPSLAT, ZGPSLON,
           ZWATERTYPE, ZDIFFICULTY, ZALTITUDE, ZNOTES
    FROM ZDIVESITE
"""

BUDDIES_SQL = "SELECT Z_PK, ZNAME, ZUUID FROM ZBUDDY"

TAGS_SQL = "SELECT Z_PK, ZNAME FROM ZTAG"

TANK_USAGE_SQL = """
    SELECT
        tg.ZRELATIONSHIPDIVE, tg.ZISDOUBLE, tg.ZORDER, tg.ZDURATION,
        tg.ZSUPPLYTYPE, tg.ZAIREND, tg.ZAIRSTART, tg.ZUUID,
        t.ZSIZE, t.ZWORKINGPRESSURE, t.ZNAME, t.ZTYPE,
        g.ZOXYGEN, g.ZHELIUM, g.ZMINPPO2, g.ZMAXPPO2
    FROM ZTANKANDGAS tg
    LEFT JOIN ZTANK t ON t.Z_PK = tg.ZRELATIONSHIPTANK
    LEFT JOIN ZGAS g ON g.Z_PK = tg.ZRELATIONSHIPGAS
"""

DIVES_SQL = """
    SELECT
        Z_PK, ZDIVENUMBER, ZRAWDATE, ZTOTALDURATION, ZMAXDEPTH, ZAVERAGEDEPTH,
        ZRELATIONSHIPDIVESITE, ZREPETITIVEDIVENUMBER, ZSURFACEINTERVAL,
        ZAIRTEMP, ZTEMPHIGH, ZTEMPLOW, ZWEATHER, ZCURRENT, ZSURFACECONDITIONS,
        ZVISIBILITY, ZENTRYTYPE,
        ZDECOMPRESSION, ZCNS, ZDECOMODEL, ZGASMODEL, ZSAMPLEINTERVAL,
        ZBOATCAPTAIN, ZBOATNAME, ZDIVEMASTER, ZDIVEOPERATOR,
        ZRATING, ZNOTES
    FROM ZDIVE
"""

# Z_1RELATIONSHIPBUDDIES -> buddy PK, Z_5RELATIONSHIPDIVE -> dive PK
BUDDY_LINKS_SQL = """
    SELECT Z_5RELATIONSHIPDIVE, Z_1RELATIONSHIPBUDDIES
    FROM Z_1RELATIONSHIPDIVE
"""

# Z_5RELATIONSHIPDIVES -> dive PK, Z_17RELATIONSHIPTAGS -> tag PK
TAG_LINKS_SQL = """
    SELECT Z_5RELATIONSHIPDIVES, Z_17RELATIONSHIPTAGS
    FROM Z_5RELATIONSHIPTAGS
"""


# ----------------- CELL DECODING -----------------


def as_float(value: Any) -> Optional[float]:
    """
    Decode a nullable numeric cell.

    Raises:
        FieldUnparsable: if the cell holds something that is not a finite number
    """
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise FieldUnparsable(f"not a number: {value!r}")
    if not math.isfinite(number):
        raise FieldUnparsable(f"not a finite number: {value!r}")
    return number


def as_int(value: Any) -> Optional[int]:
    number = as_float(value)
    if number is None:
        return None
    try:
        return int(number)
    except (OverflowError, ValueError):
        raise FieldUnparsable(f"not an integer: {value!r}")


def as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return str(value)


def _lenient(decode, value: Any, column: str) -> Any:
    try:
        return decode(value)
    except FieldUnparsable as e:
        logger.debug(f"Ignoring {column}: {e}")
        return None


class MacDiveSchemaReader:
    """
    Scoped read-only connection to a MacDive store.

    Use as a context manager; the connection is closed on every exit path:

        with MacDiveSchemaReader(path) as reader:
            for row in reader.dives():
                ...
    """

    def __init__(self, db_path: Union[str, Path]):
        if db_path is None:
            raise ValueError("db_path is required")
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def open(self) -> None:
        """
        Open the store read-only.

        Raises:
            SourceUnavailable: if the file is missing or not a SQLite database
        """
        if not self.db_path.is_file():
            raise SourceUnavailable(f"MacDive database not found: {self.db_path}")
        try:
            conn = sqlite3.connect(self.db_path.resolve().as_uri() + "?mode=ro", uri=True)
            # Reading the schema fails fast on files that are not SQLite
            conn.execute("SELECT name FROM sqlite_master LIMIT 1").fetchall()
        except sqlite3.DatabaseError as e:
            raise SourceUnavailable(f"Cannot open MacDive database {self.db_path}: {e}") from e
        self._conn = conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "MacDiveSchemaReader":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _query(self, sql: str) -> Iterator[tuple]:
        if self._conn is None:
            raise SourceUnavailable("MacDive database is not open")
        try:
            rows = self._conn.execute(sql).fetchall()
        except sqlite3.DatabaseError as e:
            raise SourceUnavailable(f"Query failed on {self.db_path}: {e}") from e
        return iter(rows)

    # ----------------- TABLES -----------------

    def sites(self) -> Iterator[SiteRow]:
        for r in self._query(SITES_SQL):
            pk = _lenient(as_int, r[0], 'ZDIVESITE.Z_PK')
            if pk is None:
                continue
            yield SiteRow(
                pk=pk,
                name=as_text(r[1]),
                location=as_text(r[2]),
                country=as_text(r[3]),
                latitude=_lenient(as_float, r[4], 'ZGPSLAT'),
                longitude=_lenient(as_float, r[5], 'ZGPSLON'),
                water_type=as_text(r[6]),
                difficulty=as_text(r[7]),
                altitude=_lenient(as_float, r[8], 'ZALTITUDE'),
                notes=as_text(r[9]),
            )

    def buddies(self) -> Iterator[BuddyRow]:
        for r in self._query(BUDDIES_SQL):
            pk = _lenient(as_int, r[0], 'ZBUDDY.Z_PK')
            if pk is None:
                continue
            yield BuddyRow(pk=pk, name=as_text(r[1]), uuid=as_text(r[2]))

    def tags(self) -> Iterator[TagRow]:
        for r in self._query(TAGS_SQL):
            pk = _lenient(as_int, r[0], 'ZTAG.Z_PK')
            if pk is None:
                continue
            yield TagRow(pk=pk, name=as_text(r[1]))

    def tank_usage(self) -> Iterator[TankGasRow]:
        for r in self._query(TANK_USAGE_SQL):
            dive_pk = _lenient(as_int, r[0], 'ZTANKANDGAS.ZRELATIONSHIPDIVE')
            if dive_pk is None:
                continue
            yield TankGasRow(
                dive_pk=dive_pk,
                is_double=_lenient(as_int, r[1], 'ZISDOUBLE'),
                sort_order=_lenient(as_int, r[2], 'ZORDER'),
                duration=_lenient(as_float, r[3], 'ZDURATION'),
                supply_type=as_text(r[4]),
                air_end=_lenient(as_float, r[5], 'ZAIREND'),
                air_start=_lenient(as_float, r[6], 'ZAIRSTART'),
                uuid=as_text(r[7]),
                tank_size=_lenient(as_float, r[8], 'ZSIZE'),
                working_pressure=_lenient(as_float, r[9], 'ZWORKINGPRESSURE'),
                tank_name=as_text(r[10]),
                tank_type=as_text(r[11]),
                oxygen=_lenient(as_float, r[12], 'ZOXYGEN'),
                helium=_lenient(as_float, r[13], 'ZHELIUM'),
                min_ppo2=_lenient(as_float, r[14], 'ZMINPPO2'),
                max_ppo2=_lenient(as_float, r[15], 'ZMAXPPO2'),
            )

    def dives(self) -> Iterator[DiveRow]:
        for r in self._query(DIVES_SQL):
            pk = _lenient(as_int, r[0], 'ZDIVE.Z_PK')
            if pk is None:
                continue
            yield DiveRow(
                pk=pk,
                dive_number=_lenient(as_int, r[1], 'ZDIVENUMBER'),
                raw_date=_lenient(as_float, r[2], 'ZRAWDATE'),
                total_duration=_lenient(as_float, r[3], 'ZTOTALDURATION'),
                max_depth=_lenient(as_float, r[4], 'ZMAXDEPTH'),
                average_depth=_lenient(as_float, r[5], 'ZAVERAGEDEPTH'),
                site_pk=_lenient(as_int, r[6], 'ZRELATIONSHIPDIVESITE'),
                repetitive_dive_number=_lenient(as_int, r[7], 'ZREPETITIVEDIVENUMBER'),
                surface_interval=_lenient(as_float, r[8], 'ZSURFACEINTERVAL'),
                air_temp=_lenient(as_float, r[9], 'ZAIRTEMP'),
                temp_high=_lenient(as_float, r[10], 'ZTEMPHIGH'),
                temp_low=_lenient(as_float, r[11], 'ZTEMPLOW'),
                weather=as_text(r[12]),
                current=as_text(r[13]),
                surface_conditions=as_text(r[14]),
                visibility=as_text(r[15]),
                entry_type=as_text(r[16]),
                decompression=_lenient(as_int, r[17], 'ZDECOMPRESSION'),
                cns=_lenient(as_float, r[18], 'ZCNS'),
                deco_model=as_text(r[19]),
                gas_model=as_text(r[20]),
                sample_interval=_lenient(as_float, r[21], 'ZSAMPLEINTERVAL'),
                boat_captain=as_text(r[22]),
                boat_name=as_text(r[23]),
                divemaster=as_text(r[24]),
                dive_operator=as_text(r[25]),
                rating=_lenient(as_float, r[26], 'ZRATING'),
                notes=as_text(r[27]),
            )

    def buddy_links(self) -> Iterator[LinkRow]:
        return self._links(BUDDY_LINKS_SQL, 'Z_1RELATIONSHIPDIVE')

    def tag_links(self) -> Iterator[LinkRow]:
        return self._links(TAG_LINKS_SQL, 'Z_5RELATIONSHIPTAGS')

    def _links(self, sql: str, table: str) -> Iterator[LinkRow]:
        for r in self._query(sql):
            dive_pk = _lenient(as_int, r[0], table)
            other_pk = _lenient(as_int, r[1], table)
            if dive_pk is None or other_pk is None:
                continue
            yield LinkRow(dive_pk=dive_pk, other_pk=other_pk)
