"""HTTP client for the Fiasco repository protocol."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from fiasco.exceptions import ProtocolError
from fiasco.repository.codec import decode_artifacts, encode_artifact, frame_artifact
from fiasco.schemas.artifact import Artifact
from fiasco.schemas.descriptor import ArtifactDescriptor
from fiasco.schemas.protocol import (
    FRAME_MEDIA_TYPE,
    HEALTH_PATH,
    INSTALL_ARTIFACT_PATH,
    RESOLVE_ARTIFACTS_PATH,
    HealthResponse,
    InstallArtifactRequest,
    InstallArtifactResponse,
    InstallationResult,
    ResolveArtifactRequest,
    ResolveArtifactResponse,
)

logger = logging.getLogger(__name__)

Transport = Callable[[str, Dict[str, str], Any], Any]

DEFAULT_FRAME_THRESHOLD = 1 << 20


class FiascoClient:
    """Client for a Fiasco repository server.

    ``transport(url, headers, payload)`` performs one request and returns the
    decoded JSON body. A ``None`` payload means GET and a ``bytes``
    payload is posted raw (framed uploads). The default transport
    uses ``requests``.

    Installs whose attachments together exceed ``frame_threshold`` bytes are
    sent framed.
    """

    def __init__(
        self,
        base_url: str,
        timeout: int = 30,
        transport: Transport | None = None,
        frame_threshold: int = DEFAULT_FRAME_THRESHOLD,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.frame_threshold = frame_threshold
        self.transport = transport or self._requests_transport

    def resolve_artifacts(self, descriptors: Iterable[ArtifactDescriptor | str]) -> List[Artifact]:
        request = ResolveArtifactRequest(
            descriptors=[ArtifactDescriptor.coerce(d).to_literal() for d in descriptors]
        )
        body = self._call(RESOLVE_ARTIFACTS_PATH, request.model_dump())
        response = self._validate(ResolveArtifactResponse, body)
        return decode_artifacts(response.artifacts)

    def install_artifact(self, artifact: Artifact, framed: Optional[bool] = None) -> InstallationResult:
        """Upload an artifact.

        Framed uploads send content as raw bytes instead of base64. By default
        an artifact is framed when its content is larger than ``frame_threshold``.
        """
        if framed is None:
            framed = content_size(artifact) > self.frame_threshold
        if framed:
            body = self._call(INSTALL_ARTIFACT_PATH, frame_artifact(artifact), FRAME_MEDIA_TYPE)
        else:
            request = InstallArtifactRequest(artifact=encode_artifact(artifact, inline=True))
            body = self._call(INSTALL_ARTIFACT_PATH, request.model_dump())
        response = self._validate(InstallArtifactResponse, body)
        if response.result == InstallationResult.FAILED:
            logger.warning("Server %s failed to install %s: %s", self.base_url, artifact, response.message)
        return response.result

    def health(self) -> HealthResponse:
        return self._validate(HealthResponse, self._call(HEALTH_PATH, None))

    def _call(self, path: str, payload: Any, content_type: str = "application/json") -> Any:
        headers = {"accept": "application/json"}
        if payload is not None:
            headers["content-type"] = content_type
        return self.transport(f"{self.base_url}{path}", headers, payload)

    @staticmethod
    def _validate(model, body: Any):
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise ProtocolError(f"malformed {model.__name__}: {exc}") from exc

    def _requests_transport(self, url: str, headers: Dict[str, str], payload: Any) -> Any:
        import requests

        if payload is None:
            resp = requests.get(url, headers=headers, timeout=self.timeout)
        elif isinstance(payload, bytes):
            resp = requests.post(url, headers=headers, data=payload, timeout=self.timeout)
        else:
            resp = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as exc:
            raise ProtocolError(f"non-JSON response from {url}") from exc


def content_size(artifact: Artifact) -> int:
    """Total bytes of an artifact's attachments."""
    return sum(attachment.content.size for attachment in artifact.attachments if attachment.content is not None)
