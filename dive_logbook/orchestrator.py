"""Attach synthetic profiles to dives that arrive without samples."""

import dataclasses
import logging
from typing import List, Optional

from .models import Dive
from .synthetic import SyntheticProfileGenerator

logger = logging.getLogger(__name__)


def ensure_profile(
    dive: Dive, generator: Optional[SyntheticProfileGenerator] = None
) -> Dive:
    """
    Return the dive with a usable sample series.

    Dives that already carry samples are returned as-is. Otherwise a copy is
    returned with a synthetic profile attached and its summary fields made
    consistent with that profile: duration equals the last sample time, max
    depth equals the deepest sample, and the average never exceeds the max.

    Args:
        dive: Dive from an importer
        generator: Generator to use; defaults to SyntheticProfileGenerator()

    Returns:
        Dive whose samples list is non-empty
    """
    if dive.samples:
        return dive

    generator = generator or SyntheticProfileGenerator()
    samples = generator.generate_for(dive)

    max_depth = max(s.depth_m for s in samples)
    avg_depth = min(max(0.0, dive.avg_depth_m), max_depth)

    logger.debug(
        f"Synthesized {len(samples)} samples for dive {dive.number} "
        f"({dive.duration_minutes:.1f} min, {dive.max_depth_m:.1f} m)"
    )

    return dataclasses.replace(
        dive,
        samples=samples,
        duration=samples[-1].time,
        max_depth_m=max_depth,
        avg_depth_m=avg_depth,
    )


def ensure_profiles(
    dives: List[Dive], generator: Optional[SyntheticProfileGenerator] = None
) -> List[Dive]:
    generator = generator or SyntheticProfileGenerator()
    result = [ensure_profile(d, generator) for d in dives]

    synthesized = sum(1 for before, after in zip(dives, result) if before is not after)
    if synthesized:
        logger.info(f"Synthesized profiles for {synthesized} of {len(dives)} dives")
    return result
