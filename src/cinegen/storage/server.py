"""HTTP surface of the durable store."""

import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from ..errors import InvalidPathError, PayloadTooLargeError
from .store import DurableStore

logger = logging.getLogger(__name__)


class SaveRequest(BaseModel):
    """Body of ``POST /api/files/save``."""

    username: Optional[str] = None
    resource_type: Optional[str] = Field(default=None, alias="resourceType")
    filename: Optional[str] = None
    data: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")

    class Config:
        """Pydantic config."""
        populate_by_name = True


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _store(request: Request) -> DurableStore:
    return request.app.state.store


router = APIRouter(prefix="/api")


@router.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "cinegen-store"}


@router.post("/files/save")
def save_file(body: SaveRequest, request: Request):
    """Persist a data URL or base64 payload."""
    if not body.username or not body.resource_type or not body.data:
        return _error(400, "Missing required fields")

    try:
        stored = _store(request).save(
            body.username,
            body.resource_type,
            body.filename,
            body.data,
            body.mime_type,
        )
    except InvalidPathError as e:
        return _error(400, str(e))
    except PayloadTooLargeError as e:
        return _error(413, str(e))
    except ValueError as e:
        return _error(400, str(e))

    return {
        "success": True,
        "url": stored.url,
        "path": str(stored.path),
        "filename": stored.filename,
    }


@router.get("/files/get/{namespace}/{category}/{filename}")
def get_file(namespace: str, category: str, filename: str, request: Request):
    """Stream a stored file with a content type derived from its extension."""
    try:
        found = _store(request).get(namespace, category, filename)
    except InvalidPathError as e:
        return _error(400, str(e))
    if found is None:
        return _error(404, "File not found")
    path, media_type = found
    return FileResponse(path, media_type=media_type)


def _listing(request: Request, namespace: str, category: Optional[str]):
    try:
        result = _store(request).list(namespace, category)
    except InvalidPathError as e:
        return _error(400, str(e))

    if isinstance(result, list):
        return {"files": [entry.__dict__ for entry in result]}
    if not result:
        return {"files": []}
    return {name: [entry.__dict__ for entry in entries] for name, entries in result.items()}


@router.get("/files/list/{namespace}")
def list_namespace(namespace: str, request: Request):
    """List every category of a namespace."""
    return _listing(request, namespace, None)


@router.get("/files/list/{namespace}/{category}")
def list_category(namespace: str, category: str, request: Request):
    """List the files of one category."""
    return _listing(request, namespace, category)


def create_app(root: Union[str, Path, DurableStore]) -> FastAPI:
    """Build the store application.

    Args:
        root: Storage root directory, or an existing DurableStore.

    Returns:
        Configured FastAPI application.
    """
    store = root if isinstance(root, DurableStore) else DurableStore(root)

    app = FastAPI(
        title="cinegen store",
        description="Durable storage for generated images and videos",
    )
    app.state.store = store
    app.include_router(router)

    logger.info(f"Store root: {store.root}")
    return app
