"""FastAPI application serving a repository over the Fiasco protocol."""

from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from fiasco import __version__
from fiasco.exceptions import DescriptorParseError, ProtocolError, RepositoryError
from fiasco.repository.base import Repository
from fiasco.repository.codec import decode_artifact, encode_artifacts, unframe_artifact
from fiasco.repository.local import LocalRepository
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


def default_repository() -> LocalRepository:
    """Server backend from ``FIASCO_SERVER_NAME`` / ``FIASCO_SERVER_ROOT``."""
    name = os.getenv("FIASCO_SERVER_NAME", "fiasco-server")
    return LocalRepository(name, os.getenv("FIASCO_SERVER_ROOT") or None)


def create_app(repository: Optional[Repository] = None) -> FastAPI:
    repository = repository if repository is not None else default_repository()
    app = FastAPI(title="Fiasco Repository Server", version=__version__)
    app.state.repository = repository

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        response = await call_next(request)
        response.headers["x-request-id"] = rid
        return response

    @app.get(HEALTH_PATH)
    def healthz() -> dict[str, Any]:
        return HealthResponse(repository=repository.name).model_dump()

    @app.post(RESOLVE_ARTIFACTS_PATH)
    def resolve_artifacts(req: ResolveArtifactRequest) -> dict[str, Any]:
        try:
            descriptors = [ArtifactDescriptor.query_of(text) for text in req.descriptors]
        except DescriptorParseError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        try:
            artifacts = repository.resolve_artifacts(descriptors)
        except RepositoryError as exc:
            logger.error("Resolve failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc))
        logger.debug("Resolved %d artifact(s) for %s", len(artifacts), req.descriptors)
        return ResolveArtifactResponse(artifacts=encode_artifacts(artifacts, inline=True)).model_dump()

    @app.post(INSTALL_ARTIFACT_PATH)
    async def install_artifact(request: Request) -> dict[str, Any]:
        body = await request.body()
        try:
            if request.headers.get("content-type", "").startswith(FRAME_MEDIA_TYPE):
                artifact = unframe_artifact(body)
            else:
                artifact = decode_artifact(InstallArtifactRequest.model_validate_json(body).artifact)
        except (ProtocolError, ValidationError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        try:
            result = await run_in_threadpool(repository.install_artifact, artifact)
        except RepositoryError as exc:
            logger.error("Install of %s failed: %s", artifact, exc)
            return InstallArtifactResponse(result=InstallationResult.FAILED, message=str(exc)).model_dump(mode="json")
        return InstallArtifactResponse(result=result).model_dump(mode="json")

    return app
