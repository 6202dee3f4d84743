"""Canned demo dives for callers that want content before anything is imported."""

from datetime import datetime, timedelta
from typing import List, Optional

from .models import Dive
from .orchestrator import ensure_profiles
from .synthetic import SyntheticProfileGenerator


def demo_dives(
    now: Optional[datetime] = None,
    generator: Optional[SyntheticProfileGenerator] = None,
) -> List[Dive]:
    """
    Build two demo dives with synthetic profiles.

    Args:
        now: Reference time for the start timestamps (defaults to datetime.now())
        generator: Profile generator to use

    Returns:
        List of Dive objects, each with a synthetic sample series
    """
    now = now or datetime.now()

    dives = [
        Dive(
            number=1,
            start_time=now - timedelta(days=1),
            duration=timedelta(minutes=46),
            max_depth_m=21.3,
            avg_depth_m=14.8,
            notes="La Jolla Shores - skills and scooter play",
        ),
        Dive(
            number=2,
            start_time=now - timedelta(days=7),
            duration=timedelta(minutes=54),
            max_depth_m=32.0,
            avg_depth_m=20.1,
            notes="Yukon - nice viz, mild current",
        ),
    ]
    return ensure_profiles(dives, generator)
