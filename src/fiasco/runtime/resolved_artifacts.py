"""Thread-safe registry of resolved (or failed) artifacts.

Resolver threads publish into the registry; builder threads block on it until
the artifacts they need are available. Waits are condition-variable based and
accept a timeout.
"""

from __future__ import annotations

import time
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from fiasco.schemas.artifact import Artifact
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.errors import ResolutionFailure


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one descriptor: an artifact or a failure."""

    descriptor: ArtifactDescriptor
    artifact: Optional[Artifact] = None
    failure: Optional[ResolutionFailure] = None

    @property
    def succeeded(self) -> bool:
        return self.artifact is not None


@dataclass
class WaitResult:
    """What a wait observed: resolved artifacts, failures, and anything still pending."""

    resolved: Dict[ArtifactDescriptor, Artifact] = field(default_factory=dict)
    failed: Dict[ArtifactDescriptor, ResolutionFailure] = field(default_factory=dict)
    pending: List[ArtifactDescriptor] = field(default_factory=list)
    timed_out: bool = False

    @property
    def complete(self) -> bool:
        return not self.pending and not self.failed


class ResolvedArtifactSet:
    """Map of descriptor to :class:`Resolution`, guarded by a condition variable.

    The first publication for a descriptor wins. Later publications are
    ignored so every waiter observes the same artifact instance.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._resolutions: Dict[ArtifactDescriptor, Resolution] = {}

    def publish(self, resolution: Resolution) -> Resolution:
        """Record a resolution and wake waiters. Returns the resolution that is in effect."""
        with self._condition:
            existing = self._resolutions.get(resolution.descriptor)
            if existing is not None:
                return existing
            self._resolutions[resolution.descriptor] = resolution
            self._condition.notify_all()
            return resolution

    def resolve(self, artifacts: Iterable[Artifact], descriptor: Optional[ArtifactDescriptor] = None) -> None:
        """Publish artifacts under their own descriptors (and ``descriptor``, for the first one)."""
        for artifact in artifacts:
            self.publish(Resolution(artifact.descriptor, artifact=artifact))
            if descriptor is not None and descriptor != artifact.descriptor:
                self.publish(Resolution(descriptor, artifact=artifact))
                descriptor = None

    def fail(self, descriptor: ArtifactDescriptor, reason: str, repositories_tried: Iterable[str] = ()) -> None:
        failure = ResolutionFailure(
            descriptor=descriptor.to_literal(),
            reason=reason,
            repositories_tried=list(repositories_tried),
        )
        self.publish(Resolution(descriptor, failure=failure))

    def get(self, descriptor: ArtifactDescriptor) -> Optional[Resolution]:
        with self._condition:
            return self._resolutions.get(descriptor)

    def is_resolved(self, descriptors: Iterable[ArtifactDescriptor]) -> bool:
        """True if every descriptor has a successful resolution. Never blocks."""
        with self._condition:
            for descriptor in descriptors:
                resolution = self._resolutions.get(descriptor)
                if resolution is None or not resolution.succeeded:
                    return False
            return True

    def wait_for_resolution_of(
        self,
        descriptors: Iterable[ArtifactDescriptor],
        timeout: Optional[float] = None,
    ) -> WaitResult:
        """Block until every descriptor is resolved or failed, or until ``timeout`` elapses.

        A failed descriptor counts as settled, so waiting on something that
        can never resolve still returns.
        """
        wanted = list(dict.fromkeys(descriptors))
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while True:
                pending = [d for d in wanted if d not in self._resolutions]
                if not pending:
                    return self._snapshot(wanted, pending, timed_out=False)
                if deadline is None:
                    self._condition.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return self._snapshot(wanted, pending, timed_out=True)
                self._condition.wait(remaining)

    def _snapshot(self, wanted: List[ArtifactDescriptor], pending: List[ArtifactDescriptor], timed_out: bool) -> WaitResult:
        result = WaitResult(pending=pending, timed_out=timed_out)
        for descriptor in wanted:
            resolution = self._resolutions.get(descriptor)
            if resolution is None:
                continue
            if resolution.succeeded:
                result.resolved[descriptor] = resolution.artifact
            else:
                result.failed[descriptor] = resolution.failure
        return result

    def failures(self) -> List[ResolutionFailure]:
        with self._condition:
            return [r.failure for r in self._resolutions.values() if r.failure is not None]

    def artifacts(self) -> List[Artifact]:
        with self._condition:
            return sorted({r.artifact for r in self._resolutions.values() if r.artifact is not None})

    def size(self) -> int:
        with self._condition:
            return len(self._resolutions)

    def __len__(self) -> int:
        return self.size()
