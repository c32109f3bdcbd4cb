from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from outreach_cms.auth.deps import get_cfg, get_current_user, get_pool, require_editor, require_owner_or_admin
from outreach_cms.cms import media
from outreach_cms.config import Config
from outreach_cms.db import ConnectionPool
from outreach_cms.errors import NotFound, ValidationError
from outreach_cms.util.files import remove_file, save_upload

from .schemas import CamelModel, deleted

router = APIRouter(prefix="/media", tags=["media"])


class MediaUpdateBody(CamelModel):
    alt_text: Optional[str] = None
    caption: Optional[str] = None


def _public_url(cfg: Config, file_name: str) -> str:
    return f"{cfg.UPLOAD_URL_PREFIX.rstrip('/')}/{file_name}"


@router.post("/upload", status_code=201)
def upload_media(
    file: Optional[UploadFile] = File(None),
    alt_text: Optional[str] = Form(None),
    caption: Optional[str] = Form(None),
    user: Dict[str, Any] = Depends(require_editor),
    cfg: Config = Depends(get_cfg),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    if file is None or not file.filename:
        raise ValidationError("Please upload a file")

    file_name, size = save_upload(
        file.file,
        original_name=file.filename,
        mime_type=file.content_type,
        upload_dir=cfg.UPLOAD_DIR,
        max_bytes=int(cfg.UPLOAD_MAX_BYTES),
    )
    try:
        with pool.connection() as conn:
            return media.create(
                conn,
                original_name=str(file.filename),
                mime_type=str(file.content_type).lower(),
                file_name=file_name,
                size=size,
                url=_public_url(cfg, file_name),
                uploaded_by=int(user["id"]),
                alt_text=alt_text,
                caption=caption,
            )
    except Exception:
        # No row, no file.
        remove_file(cfg.UPLOAD_DIR, file_name)
        raise


@router.get("")
def list_media(
    page: int = 1,
    limit: int = 20,
    type: Optional[str] = None,
    search: Optional[str] = None,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return media.find_all(conn, page=page, limit=limit, mime_prefix=type, search=search)


@router.get("/{media_id}")
def get_media(
    media_id: int,
    _user: Dict[str, Any] = Depends(get_current_user),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = media.find_by_id(conn, media_id)
    if row is None:
        raise NotFound("Media not found")
    return row


@router.put("/{media_id}", dependencies=[Depends(require_editor)])
def update_media(
    media_id: int,
    payload: MediaUpdateBody,
    _user: Dict[str, Any] = Depends(require_owner_or_admin(media.RESOURCE, id_param="media_id")),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        return media.update(conn, media_id, alt_text=payload.alt_text, caption=payload.caption)


@router.delete("/{media_id}", dependencies=[Depends(require_editor)])
def delete_media(
    media_id: int,
    _user: Dict[str, Any] = Depends(require_owner_or_admin(media.RESOURCE, id_param="media_id")),
    cfg: Config = Depends(get_cfg),
    pool: ConnectionPool = Depends(get_pool),
) -> Dict[str, Any]:
    with pool.connection() as conn:
        row = media.delete(conn, media_id)
    # After commit: a failed delete leaves the file in place.
    remove_file(cfg.UPLOAD_DIR, str(row["file_name"]))
    return deleted("Media")
