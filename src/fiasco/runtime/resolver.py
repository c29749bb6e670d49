"""Concurrent, deduplicating, transitive artifact resolution."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional

from fiasco.exceptions import ResolutionError
from fiasco.schemas.descriptor import ArtifactDescriptor

from .librarian import Librarian
from .resolved_artifacts import Resolution, ResolvedArtifactSet, WaitResult

if TYPE_CHECKING:
    from fiasco.build.builder import Builder
    from fiasco.telemetry import BuildTelemetry

logger = logging.getLogger(__name__)


class ArtifactResolver:
    """Resolves descriptors on a thread pool and publishes into a :class:`ResolvedArtifactSet`.

    Each descriptor is resolved at most once: concurrent requests share one
    in-flight future, so N requesters cause a single repository round trip.
    Dependencies of every resolved artifact (minus its exclusions) are
    enqueued transitively; the memo of submitted descriptors doubles as the
    visited set, so dependency cycles terminate.
    """

    def __init__(
        self,
        librarian: Librarian,
        resolved: Optional[ResolvedArtifactSet] = None,
        threads: int = 16,
        max_retries: int = 0,
        retry_backoff: float = 0.0,
        telemetry: Optional[BuildTelemetry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.librarian = librarian
        self.resolved = resolved if resolved is not None else ResolvedArtifactSet()
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.telemetry = telemetry
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(max_workers=threads, thread_name_prefix="fiasco-resolver")
        self._lock = threading.Lock()
        self._futures: Dict[ArtifactDescriptor, Future] = {}
        self._closed = False

    def __enter__(self) -> "ArtifactResolver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def resolve_artifacts(self, descriptors: Iterable[ArtifactDescriptor | str]) -> List[Future]:
        """Start resolving descriptors. Each future yields a :class:`Resolution`."""
        return [self._submit(ArtifactDescriptor.coerce(d)) for d in descriptors]

    def resolve_builder(self, builder: Builder) -> List[Future]:
        """Start resolving the artifact dependencies of every builder in the tree."""
        from .dependency_tree import DependencyTree

        futures: List[Future] = []
        for each in DependencyTree(builder).depth_first():
            futures.extend(self.resolve_artifacts(each.artifact_dependencies()))
        return futures

    def wait_for_resolution_of(
        self,
        descriptors: Iterable[ArtifactDescriptor | str],
        timeout: Optional[float] = None,
    ) -> WaitResult:
        wanted = [ArtifactDescriptor.coerce(d) for d in descriptors]
        self.resolve_artifacts(wanted)
        return self.resolved.wait_for_resolution_of(wanted, timeout=timeout)

    def is_resolved(self, descriptors: Iterable[ArtifactDescriptor | str]) -> bool:
        return self.resolved.is_resolved(ArtifactDescriptor.coerce(d) for d in descriptors)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _submit(self, descriptor: ArtifactDescriptor) -> Future:
        with self._lock:
            future = self._futures.get(descriptor)
            if future is not None:
                return future
            if self._closed:
                future = Future()
                self._futures[descriptor] = future
            else:
                future = self._executor.submit(self._resolve, descriptor)
                self._futures[descriptor] = future
                return future
        self.resolved.fail(descriptor, "resolver is shut down")
        future.set_result(self.resolved.get(descriptor))
        return future

    def _resolve(self, descriptor: ArtifactDescriptor) -> Resolution:
        attempt = 0
        while True:
            try:
                artifacts = self.librarian.resolve(descriptor)
                break
            except ResolutionError as exc:
                if attempt < self.max_retries:
                    delay = self.retry_backoff * (2 ** attempt)
                    attempt += 1
                    logger.debug("Retrying %s in %.2fs (attempt %d): %s", descriptor, delay, attempt, exc.message)
                    self._sleep(delay)
                    continue
                logger.warning("Unable to resolve %s: %s", descriptor, exc.message)
                self.resolved.fail(descriptor, exc.message, exc.repositories_tried)
                self._emit_failed(descriptor, exc.message)
                return self.resolved.get(descriptor)
            except Exception as exc:
                logger.exception("Unexpected error resolving %s", descriptor)
                self.resolved.fail(descriptor, f"unexpected error: {exc}")
                self._emit_failed(descriptor, str(exc))
                return self.resolved.get(descriptor)

        self.resolved.resolve(artifacts, descriptor)
        with self._lock:
            for artifact in artifacts:
                if artifact.descriptor not in self._futures:
                    done: Future = Future()
                    done.set_result(self.resolved.get(artifact.descriptor))
                    self._futures[artifact.descriptor] = done
        for artifact in artifacts:
            if self.telemetry:
                self.telemetry.artifact_resolved(artifact.descriptor.to_literal(), artifact.repository_name)
            self.resolve_artifacts(artifact.artifact_dependencies())
        return self.resolved.get(descriptor)

    def _emit_failed(self, descriptor: ArtifactDescriptor, reason: str) -> None:
        if self.telemetry:
            self.telemetry.artifact_failed(descriptor.to_literal(), reason)
