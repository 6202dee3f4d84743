"""
Importers that turn external dive logs into canonical Dive objects.

This module provides:
- MacDive SQLite store import with primary-key join resolution
- Namespace-agnostic UDDF XML import
- Extension-based dispatch for log files
- The dive-computer download contract
"""

from importers.macdive import MacDiveImporter
from importers.macdive_schema import MacDiveSchemaReader
from importers.uddf import UDDFImporter
from importers.xmltree import XmlNode, parse_document
from importers.loader import load_dives, importer_kind
from importers.dive_computer import DiveComputerImporter, DiveComputerModel, ImportScope

__all__ = [
    "MacDiveImporter",
    "MacDiveSchemaReader",
    "UDDFImporter",
    "XmlNode",
    "parse_document",
    "load_dives",
    "importer_kind",
    "DiveComputerImporter",
    "DiveComputerModel",
    "ImportScope",
]
