"""Fiasco repository server and its client."""

from .client import FiascoClient

__all__ = ["FiascoClient"]
