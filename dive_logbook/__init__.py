"""
Canonical dive log model.

Modules:
    - models: Dive, DiveSample, DiveSite, Buddy, TankUsage
    - units: pure unit conversions into the canonical (SI-style) units
    - synthetic: deterministic synthetic profile generator
    - orchestrator: attach synthetic profiles to dives without samples
    - config: config.yaml loading
    - errors: import error taxonomy
    - demo: canned demo dives
"""

from .models import Dive, DiveSample, DiveSite, Buddy, TankUsage
from .synthetic import SyntheticProfileGenerator, generate_synthetic_profile
from .orchestrator import ensure_profile, ensure_profiles
from .config import load_effective_config
from .errors import (
    DiveImportError,
    SourceUnavailable,
    MalformedDocument,
    FieldUnparsable,
    DanglingReference,
)
from .demo import demo_dives

__all__ = [
    "Dive",
    "DiveSample",
    "DiveSite",
    "Buddy",
    "TankUsage",
    "SyntheticProfileGenerator",
    "generate_synthetic_profile",
    "ensure_profile",
    "ensure_profiles",
    "load_effective_config",
    "DiveImportError",
    "SourceUnavailable",
    "MalformedDocument",
    "FieldUnparsable",
    "DanglingReference",
    "demo_dives",
]
