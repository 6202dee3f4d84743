"""Pick an importer from a log file's extension and run it."""

import gzip
import logging
from pathlib import Path
from typing import List, Optional, Union

from dive_logbook.config import load_effective_config
from dive_logbook.errors import SourceUnavailable
from dive_logbook.models import Dive
from dive_logbook.synthetic import SyntheticProfileGenerator

from .macdive import MacDiveImporter
from .uddf import UDDFImporter

logger = logging.getLogger(__name__)

MACDIVE_EXTENSIONS = ('.sqlite', '.db', '.macdive')
UDDF_EXTENSIONS = ('.uddf', '.xml')

# Map file extensions to importer kinds
IMPORTER_MAP = {
    **{ext: 'macdive' for ext in MACDIVE_EXTENSIONS},
    **{ext: 'uddf' for ext in UDDF_EXTENSIONS},
}

GZIP_MAGIC = b'\x1f\x8b'


def importer_kind(path: Union[str, Path]) -> str:
    """
    Return 'macdive' or 'uddf' for a log file path.

    A trailing '.gz' is looked through, so 'trip.uddf.gz' is UDDF.

    Raises:
        ValueError: if the extension is not recognised
    """
    path = Path(path)
    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] == '.gz':
        suffixes.pop()
    ext = suffixes[-1] if suffixes else ''
    if ext not in IMPORTER_MAP:
        raise ValueError(f"Unsupported dive log extension: {path.name}")
    return IMPORTER_MAP[ext]


def _read_xml_bytes(path: Path) -> bytes:
    """Read a UDDF file, transparently decompressing gzip content."""
    data = path.read_bytes()
    if data[:2] == GZIP_MAGIC:
        logger.debug(f"Decompressing gzip content of {path.name}")
        data = gzip.decompress(data)
    return data


def load_dives(path: Union[str, Path], config: Optional[dict] = None) -> List[Dive]:
    """
    Import every dive in a MacDive store or UDDF file.

    Args:
        path: Log file path
        config: Effective config (defaults to load_effective_config())

    Returns:
        Dives with sample series attached

    Raises:
        ValueError: for an unrecognised extension
        SourceUnavailable: if the file does not exist or the store cannot be read
        MalformedDocument: if a UDDF file is not well-formed XML
    """
    path = Path(path)
    config = config or load_effective_config()
    kind = importer_kind(path)

    if not path.is_file():
        raise SourceUnavailable(f"Dive log not found: {path}")

    generator = SyntheticProfileGenerator.from_config(config)
    logger.info(f"Loading {path.name} with the {kind} importer")

    if kind == 'macdive':
        return MacDiveImporter(path, generator=generator).import_all()
    return UDDFImporter(config=config, generator=generator).import_string(_read_xml_bytes(path))
