"""
Contract for downloading dives straight from a dive computer.

No native binding ships with this package. NoopInterop reports itself as
unsupported, so DiveComputerImporter returns no dives until a real interop
is supplied.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from dive_logbook.models import Dive

logger = logging.getLogger(__name__)


class ImportScope(Enum):
    ALL_DIVES = "all_dives"
    NEW_ONLY = "new_only"
    NOT_YET_IMPORTED = "not_yet_imported"


@dataclass(frozen=True)
class DiveComputerModel:
    manufacturer: str
    model: str
    protocol: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.model}"


class NoopInterop:
    """Interop used when no native dive-computer library is available."""

    is_supported = False

    def download(self, computer: DiveComputerModel, scope: ImportScope) -> List[Dive]:
        return []


class DiveComputerImporter:
    """Import dives from a connected computer through an interop object.

    The interop needs an ``is_supported`` attribute and a
    ``download(computer, scope)`` method returning dives.
    """

    def __init__(self, interop=None):
        self.interop = interop or NoopInterop()

    def import_dives(self, computer: DiveComputerModel, scope: ImportScope = ImportScope.ALL_DIVES) -> List[Dive]:
        if not self.interop.is_supported:
            logger.warning(f"Dive computer download not supported for {computer}")
            return []

        dives = list(self.interop.download(computer, scope))
        logger.info(f"Downloaded {len(dives)} dives from {computer} ({scope.value})")
        return dives
