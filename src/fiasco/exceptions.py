"""
Custom exception classes for Fiasco.

This module defines structured exception types for descriptor parsing,
repository access, wire protocol decoding and build graph processing.
"""

from typing import List, Optional


class FiascoError(Exception):
    """Base exception for all Fiasco errors."""
    pass


class DescriptorParseError(FiascoError):
    """Malformed artifact descriptor literal."""

    def __init__(self, text: str, message: str):
        self.text = text
        self.message = message
        super().__init__(f"Unable to parse artifact descriptor '{text}': {message}")


class RepositoryError(FiascoError):
    """Repository I/O or capability error."""

    def __init__(self, repository: str, message: str):
        self.repository = repository
        self.message = message
        super().__init__(f"Repository {repository}: {message}")


class ResolutionError(FiascoError):
    """A descriptor could not be resolved by any repository."""

    def __init__(self, descriptor: str, message: str, repositories_tried: Optional[List[str]] = None):
        self.descriptor = descriptor
        self.message = message
        self.repositories_tried = list(repositories_tried or [])
        super().__init__(f"Unable to resolve {descriptor}: {message}")


class ProtocolError(FiascoError):
    """Malformed wire payload or unknown type discriminator."""
    pass


class BuildGraphError(FiascoError):
    """Builder graph validation error."""

    def __init__(self, message: str, builder: Optional[str] = None):
        self.message = message
        self.builder = builder
        if builder:
            super().__init__(f"Build graph error at builder {builder}: {message}")
        else:
            super().__init__(f"Build graph error: {message}")


class PhaseError(FiascoError):
    """A phase action failed."""

    def __init__(self, builder: str, phase: str, message: str):
        self.builder = builder
        self.phase = phase
        self.message = message
        super().__init__(f"{builder}: phase {phase} failed: {message}")


class ConfigError(FiascoError):
    """Error loading build settings."""

    def __init__(self, file_name: str, message: str):
        self.file_name = file_name
        self.message = message
        super().__init__(f"Error loading {file_name}: {message}")
