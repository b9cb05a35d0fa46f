"""Persistence capability implementations.

    from objedit.backends import LocalObjectsBackend, HttpObjectsBackend
"""

from objedit.backends.base import FetchedObjects, ObjectsBackend
from objedit.backends.http import HttpObjectsBackend
from objedit.backends.local import LocalObjectsBackend

__all__ = ["FetchedObjects", "ObjectsBackend", "HttpObjectsBackend", "LocalObjectsBackend"]
