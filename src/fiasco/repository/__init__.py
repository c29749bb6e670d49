"""Artifact repositories."""

from .base import BaseRepository, Repository
from .local import LocalRepository
from .maven import MavenRepository, maven_central
from .remote import RemoteRepository

__all__ = [
    "BaseRepository",
    "Repository",
    "LocalRepository",
    "MavenRepository",
    "maven_central",
    "RemoteRepository",
]
