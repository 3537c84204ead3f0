"""Exceptions raised while turning service features into map entities.

Feature-scoped errors never escape ImportDriver; they are recorded in the
ImportReport under the class name.
"""

from __future__ import annotations


class EsriImportError(Exception):
    """Base class for all esri_import errors."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class MalformedGeometry(EsriImportError):
    """Coordinate shape is invalid for the declared geometry kind."""


class UnknownGeometryKind(EsriImportError):
    """Geometry type is not one of the five supported kinds."""


class MissingSourceId(EsriImportError):
    """Feature has no stable source identifier, so it cannot be deduplicated."""


class HostCommitError(EsriImportError):
    """The host entity store rejected a transaction."""


class ServiceFetchError(EsriImportError):
    """The feature service could not be queried or returned bad JSON."""
