"""
Canonical dive log data model.

Every physical quantity is stored in the canonical units of dive_logbook.units
(meters, Celsius, bar, liters). Optional fields use None for "not recorded",
which is kept distinct from a measured zero.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional


@dataclass(frozen=True)
class DiveSample:
    """One profile point. Time is elapsed since the start of the dive."""

    index: int
    time: timedelta
    depth_m: float
    temperature_c: Optional[float] = None
    tank_pressure_bar: Optional[float] = None
    rmv_lpm: Optional[float] = None  # surface-equivalent L/min
    sac_bar_per_min: Optional[float] = None
    ppo2: Optional[float] = None  # atm
    ndl_minutes: Optional[float] = None
    tts_minutes: Optional[float] = None
    ascent_rate_mps: Optional[float] = None  # positive = ascending
    deco_stop_depth_m: Optional[float] = None
    deco_stop_minutes: Optional[float] = None
    gas: Optional[str] = None

    @property
    def minutes(self) -> float:
        return self.time.total_seconds() / 60.0


@dataclass
class DiveSite:
    """A named dive location, shared by reference across dives."""

    name: str = ""
    location: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    water_type: Optional[str] = None
    difficulty: Optional[str] = None
    altitude_m: Optional[float] = None
    notes: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Buddy:
    name: str = ""
    external_id: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class TankUsage:
    """One cylinder / gas leg of a dive.

    Pressures stay in psi because the relational source records them in psi;
    converting is left to display code.
    """

    sort_order: int = 0
    is_double: bool = False
    duration: Optional[timedelta] = None
    supply_type: Optional[str] = None  # OC / CCR / Bailout
    air_start_psi: Optional[float] = None
    air_end_psi: Optional[float] = None
    external_id: Optional[str] = None
    tank_size_liters: Optional[float] = None
    working_pressure_psi: Optional[float] = None
    tank_name: Optional[str] = None
    tank_type: Optional[str] = None
    o2_percent: Optional[float] = None
    he_percent: Optional[float] = None
    min_ppo2: Optional[float] = None
    max_ppo2: Optional[float] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class Dive:
    """One logged dive: summary statistics, relations and the sample series."""

    number: int = 0
    start_time: Optional[datetime] = None
    duration: timedelta = timedelta(0)
    max_depth_m: float = 0.0
    avg_depth_m: float = 0.0
    notes: str = ""
    samples: List[DiveSample] = field(default_factory=list)
    site: Optional[DiveSite] = None
    buddies: List[Buddy] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    tanks: List[TankUsage] = field(default_factory=list)

    # Repetitive dive / surface interval
    repetitive_number: Optional[int] = None
    surface_interval: Optional[timedelta] = None

    # Environment
    air_temp_c: Optional[float] = None
    water_temp_high_c: Optional[float] = None
    water_temp_low_c: Optional[float] = None
    weather: Optional[str] = None
    current: Optional[str] = None
    surface_conditions: Optional[str] = None
    visibility: Optional[str] = None
    entry_type: Optional[str] = None

    # Deco / computer settings
    is_decompression: bool = False
    cns_percent: Optional[float] = None
    deco_model: Optional[str] = None
    gas_model: Optional[str] = None
    sample_interval: Optional[timedelta] = None

    # Logistics
    boat_name: Optional[str] = None
    boat_captain: Optional[str] = None
    divemaster: Optional[str] = None
    dive_operator: Optional[str] = None

    rating: Optional[float] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def has_profile(self) -> bool:
        return bool(self.samples)

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60.0
