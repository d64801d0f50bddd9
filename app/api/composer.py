from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.dependencies import get_repository
from app.domain.archive import ArchiveName
from app.domain.entities import Repository
from app.domain.errors import InvalidArchiveName, PackageNotFound
from app.services.authentication import require_permission

logger = logging.getLogger(__name__)
router = APIRouter()

JSON_MEDIA_TYPE = "application/json"

READ_ACCESS = [Depends(require_permission("read"))]
WRITE_ACCESS = [Depends(require_permission("write"))]


def repository_url(request: Request) -> str:
    """Public URL of the repository root, used for `dist` download URLs."""
    base_path = getattr(request.app.state, "base_path", "")
    return f"{str(request.base_url).rstrip('/')}{base_path}"


# ---------------------------------------------------------------------------
# 1. GET /packages.json
# ---------------------------------------------------------------------------

@router.get("/packages.json", dependencies=READ_ACCESS)
async def get_all_packages(repo: Repository = Depends(get_repository)) -> Response:
    """
    Aggregated index of every package and version, served as stored.
    """
    content = await repo.get_all_packages_raw()
    if content is None:
        raise HTTPException(status_code=404, detail="No packages")
    return Response(content=content, media_type=JSON_MEDIA_TYPE)


# ---------------------------------------------------------------------------
# 2. GET /p/{vendor}/{package}.json
# ---------------------------------------------------------------------------

@router.get("/p/{package_path:path}", dependencies=READ_ACCESS)
async def get_package(package_path: str, repo: Repository = Depends(get_repository)) -> Response:
    """
    Metadata document of a single package, served as stored.
    """
    if not package_path.endswith(".json"):
        raise HTTPException(status_code=404, detail="Package not found")
    name = package_path[: -len(".json")]

    try:
        content = await repo.get_package_raw(name)
    except ValueError:
        # Not a valid storage key, so it cannot name a stored package.
        raise PackageNotFound(name)
    return Response(content=content, media_type=JSON_MEDIA_TYPE)


# ---------------------------------------------------------------------------
# 3. GET /artifacts/{filename}
# ---------------------------------------------------------------------------

@router.get("/artifacts/{filename:path}", dependencies=READ_ACCESS)
async def download_artifact(filename: str, repo: Repository = Depends(get_repository)) -> Response:
    """
    Download endpoint referenced by `dist.url` in package metadata.
    """
    content = await repo.get_artifact(filename)
    if content is None:
        raise HTTPException(status_code=404, detail="Artifact not found")

    if filename.endswith(".zip"):
        media_type = "application/zip"
    elif filename.endswith(".json"):
        media_type = JSON_MEDIA_TYPE
    else:
        media_type = "application/octet-stream"
    return Response(content=content, media_type=media_type)


# ---------------------------------------------------------------------------
# 4. PUT / (raw composer.json upload)
# ---------------------------------------------------------------------------

@router.put("/", dependencies=WRITE_ACCESS)
async def add_package(request: Request, repo: Repository = Depends(get_repository)) -> JSONResponse:
    """
    Add a package version from a `composer.json` descriptor sent as the body.
    """
    content = await request.body()
    result = await repo.add_from_upload(content, base_url=repository_url(request))
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.model_dump())


# ---------------------------------------------------------------------------
# 5. PUT /{name}-{version}.zip (archive upload)
# ---------------------------------------------------------------------------

@router.put("/{stem}.zip", dependencies=WRITE_ACCESS)
async def add_archive(
    stem: str,
    request: Request,
    repo: Repository = Depends(get_repository),
) -> JSONResponse:
    """
    Add a package version from a zip archive named `<name>-<version>.zip`.

    Only `.zip` paths reach this route; other PUT paths get 404 or 405.
    See https://getcomposer.org/doc/05-repositories.md#artifact
    """
    filename = f"{stem}.zip"
    try:
        archive_name = ArchiveName.parse(filename)
    except InvalidArchiveName:
        logger.warning(f"Rejected upload with invalid archive name {filename!r}")
        raise
    content = await request.body()
    result = await repo.add_from_archive(archive_name, content, base_url=repository_url(request))
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.model_dump())
