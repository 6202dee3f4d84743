"""
Synthetic dive profile generator.

Fabricates a plausible, dive-computer-like sample series from a dive's summary
statistics when the source provides no real profile. Output is a pure function
of (dive_number, duration, max_depth): the random stream is seeded from the
dive number and duration, so a dive's graph is stable between runs.

The NDL/TTS values come from a toy nitrogen accumulator and are illustrative
only; they are not suitable for dive planning.
"""

import math
from datetime import timedelta
from typing import List

import numpy as np

from .config import DEFAULT_CONFIG
from .models import Dive, DiveSample
from .units import cuft_to_liters, psi_to_bar

# Phase boundaries as fractions of the dive
DESCENT_END = 0.15
ASCENT_START = 0.80

SEED_MULTIPLIER = 1337
SHALLOW_NDL_DEPTH_M = 6.0
UNLIMITED_NDL_MIN = 999.0
MAX_TTS_PENALTY_MIN = 20.0


class SyntheticProfileGenerator:
    """Generate deterministic synthetic profiles from summary statistics."""

    def __init__(
        self,
        min_duration_min: float = 10.0,
        min_steps: int = 40,
        steps_per_minute: float = 2.0,
        start_pressure_psi: float = 3000.0,
        tank_volume_cuft: float = 80.0,
        surface_temp_c: float = 20.0,
        bottom_temp_delta_c: float = 8.0,
        f_o2: float = 0.32,
        nitrogen_threshold: float = 1000.0,
    ):
        if min_steps < 1:
            raise ValueError(f"min_steps must be >= 1, got {min_steps}")
        if not (0.0 < f_o2 <= 1.0):
            raise ValueError(f"f_o2 must be in (0, 1.0], got {f_o2}")
        self.min_duration_min = min_duration_min
        self.min_steps = min_steps
        self.steps_per_minute = steps_per_minute
        self.start_pressure_psi = start_pressure_psi
        self.tank_volume_cuft = tank_volume_cuft
        self.surface_temp_c = surface_temp_c
        self.bottom_temp_c = surface_temp_c - bottom_temp_delta_c
        self.f_o2 = f_o2
        self.nitrogen_threshold = nitrogen_threshold

    @classmethod
    def from_config(cls, config: dict) -> "SyntheticProfileGenerator":
        return cls(**config.get("synthetic", DEFAULT_CONFIG["synthetic"]))

    @property
    def gas_label(self) -> str:
        return f"EAN{int(round(self.f_o2 * 100))}"

    @staticmethod
    def seed_for(dive_number: int, total_minutes: float) -> int:
        """Seed derived from the dive number and rounded duration.

        numpy only accepts non-negative seeds, so the absolute value is used.
        """
        return abs(int(dive_number) * SEED_MULTIPLIER + int(round(total_minutes)))

    def generate(
        self, dive_number: int, duration: timedelta, max_depth: float
    ) -> List[DiveSample]:
        """
        Generate a synthetic sample series.

        Args:
            dive_number: Ordinal dive number (part of the seed)
            duration: Total dive duration; floored at min_duration_min
            max_depth: Maximum depth in meters; the deepest sample equals it

        Returns:
            List of DiveSample with strictly increasing times, the last one at
            the (floored) duration
        """
        max_depth = max(0.0, float(max_depth))
        total_seconds = max(self.min_duration_min * 60.0, duration.total_seconds())
        total_minutes = total_seconds / 60.0
        steps = int(max(self.min_steps, total_minutes * self.steps_per_minute))
        step_minutes = total_minutes / steps

        rng = np.random.default_rng(self.seed_for(dive_number, total_minutes))
        # Columns: depth noise, SAC noise, temperature noise
        noise = rng.random((steps + 1, 3))

        t = np.arange(steps + 1) / steps
        seconds = np.linspace(0.0, total_seconds, steps + 1)

        depth = self._depth_curve(t, max_depth, noise[:, 0])

        ambient = 1.0 + depth / 10.0
        depth_fraction = depth / max(1.0, max_depth)

        # Surface consumption in cuft/min, 0.4 at the surface to 1.0 at depth, +/-10%
        sac_cuft = (0.4 + 0.6 * depth_fraction) * (0.9 + 0.2 * noise[:, 1])
        psi_per_cuft = self.start_pressure_psi / self.tank_volume_cuft
        gas_used_cuft = sac_cuft * ambient * step_minutes
        pressure_psi = np.maximum(
            self.start_pressure_psi - np.cumsum(gas_used_cuft) * psi_per_cuft, 0.0
        )

        temperature = (
            self.surface_temp_c * (1.0 - depth_fraction)
            + self.bottom_temp_c * depth_fraction
            + (noise[:, 2] - 0.5) * 0.3
        )

        ppo2 = self.f_o2 * ambient

        ndl, tts = self._toy_deco(depth, step_minutes)

        ascent_rate = np.zeros_like(depth)
        ascent_rate[1:] = (depth[:-1] - depth[1:]) / (step_minutes * 60.0)

        gas = self.gas_label
        return [
            DiveSample(
                index=i,
                time=timedelta(seconds=float(seconds[i])),
                depth_m=float(depth[i]),
                temperature_c=float(temperature[i]),
                tank_pressure_bar=psi_to_bar(float(pressure_psi[i])),
                rmv_lpm=cuft_to_liters(float(sac_cuft[i])),
                sac_bar_per_min=psi_to_bar(float(sac_cuft[i]) * psi_per_cuft),
                ppo2=float(ppo2[i]),
                ndl_minutes=float(ndl[i]),
                tts_minutes=float(tts[i]),
                ascent_rate_mps=float(ascent_rate[i]),
                gas=gas,
            )
            for i in range(steps + 1)
        ]

    def generate_for(self, dive: Dive) -> List[DiveSample]:
        return self.generate(dive.number, dive.duration, dive.max_depth_m)

    @staticmethod
    def _depth_curve(t: np.ndarray, max_depth: float, noise: np.ndarray) -> np.ndarray:
        """Descent, flat bottom, ascent; plus wobble and +/-0.5 m noise."""
        depth = np.where(
            t < DESCENT_END,
            t / DESCENT_END * max_depth,
            np.where(t > ASCENT_START, (1.0 - t) / (1.0 - ASCENT_START) * max_depth, max_depth),
        )
        depth = depth * (0.97 + 0.03 * np.sin(t * math.pi * 4))
        depth = depth + (noise - 0.5)
        depth = np.clip(depth, 0.0, max_depth + 1.0)

        # Rescale so the recorded max depth is the deepest sample
        peak = depth.max()
        if max_depth <= 0.0 or peak <= 0.0:
            return np.zeros_like(depth)
        depth = np.minimum(depth * (max_depth / peak), max_depth)
        depth[int(np.argmax(depth))] = max_depth
        return depth

    def _toy_deco(self, depth: np.ndarray, step_minutes: float):
        load_rate = np.power(np.maximum(0.0, depth - 5.0) + 1.0, 1.3)
        nitrogen_load = np.cumsum(load_rate * step_minutes)
        remaining = self.nitrogen_threshold - nitrogen_load

        ndl = np.where(
            depth < SHALLOW_NDL_DEPTH_M,
            UNLIMITED_NDL_MIN,
            np.maximum(remaining, 0.0) / load_rate,
        )

        ascent_time = depth / 9.0 + np.where(depth > 9.0, 3.0, 0.0)
        deficit = np.minimum(MAX_TTS_PENALTY_MIN, np.maximum(-remaining, 0.0) / load_rate)
        tts = np.where(ndl > 0.0, ascent_time, ascent_time + deficit)
        return ndl, tts


def generate_synthetic_profile(
    dive_number: int, duration: timedelta, max_depth: float
) -> List[DiveSample]:
    """Synthetic profile with the default generator settings."""
    return SyntheticProfileGenerator().generate(dive_number, duration, max_depth)
