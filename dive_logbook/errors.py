"""Error taxonomy for dive log imports.

Structural failures (SourceUnavailable, MalformedDocument) abort an import and
reach the caller. FieldUnparsable and DanglingReference are raised by low-level
helpers and absorbed by the importers, which degrade the affected field, point
or relation instead of failing.
"""


class DiveImportError(Exception):
    """Base class for all import failures."""


class SourceUnavailable(DiveImportError):
    """The relational store could not be opened or queried."""


class MalformedDocument(DiveImportError):
    """The XML text is not well-formed."""


class FieldUnparsable(DiveImportError):
    """A single field or row could not be interpreted."""


class DanglingReference(DiveImportError):
    """A join-table row points at a primary key that was not loaded."""

    def __init__(self, table: str, key):
        super().__init__(f"{table} has no row with primary key {key!r}")
        self.table = table
        self.key = key
