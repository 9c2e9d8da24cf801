"""Input intake -- turn caller input into an OrchestrationRequest.

Three input shapes are accepted:
- pasted transcript text
- a media asset picked from a storage provider (Google Drive file or
  OneDrive/SharePoint driveItem listing)
- an external import URL

Storage listings are loosely typed provider dicts. They are normalized into
MediaAsset values here so nothing untyped reaches the gate.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.app.config import get_settings
from src.app.orchestration.schemas import MediaAsset, MediaKind, OrchestrationRequest

logger = structlog.get_logger(__name__)


def _mime_type(item: dict[str, Any]) -> str:
    # Drive: {"mimeType": ...}; Graph driveItem: {"file": {"mimeType": ...}}
    mime = item.get("mimeType") or (item.get("file") or {}).get("mimeType") or ""
    return str(mime).lower()


def _size(item: dict[str, Any]) -> int | None:
    raw = item.get("size")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def normalize_media_listing(items: list[dict[str, Any]]) -> list[MediaAsset]:
    """Normalize a storage listing into audio/video MediaAssets.

    Entries that are not audio or video, or that lack an id, are dropped.

    Args:
        items: Raw provider file dicts.

    Returns:
        MediaAsset list in listing order.
    """
    assets: list[MediaAsset] = []
    for item in items:
        mime = _mime_type(item)
        file_id = item.get("id")
        if not file_id:
            continue
        if mime.startswith("audio/"):
            kind = MediaKind.AUDIO
        elif mime.startswith("video/"):
            kind = MediaKind.VIDEO
        else:
            logger.debug("media_listing_entry_skipped", file_id=file_id, mime_type=mime)
            continue
        assets.append(
            MediaAsset(
                kind=kind,
                id=str(file_id),
                name=str(item.get("name") or file_id),
                mime_type=mime,
                size_bytes=_size(item),
            )
        )
    return assets


def build_text_request(text: str, is_media: bool = False) -> OrchestrationRequest:
    """Build a request from pasted transcript text, or an already-described asset.

    Raises:
        ValueError: If the text is blank.
    """
    if not text or not text.strip():
        raise ValueError("Transcript text is empty")
    return OrchestrationRequest(raw_input=text, is_media=is_media)


def build_media_request(asset: MediaAsset) -> OrchestrationRequest:
    """Build a request describing a media asset awaiting transcription.

    Speech-to-text runs elsewhere. The oracle receives only the asset
    description and blocks when no transcript accompanies it.

    Raises:
        ValueError: If the asset exceeds the configured size limit.
    """
    limit = get_settings().MAX_MEDIA_BYTES
    if asset.size_bytes is not None and asset.size_bytes > limit:
        raise ValueError(
            f"Media asset {asset.name} exceeds maximum size "
            f"({limit // (1024 * 1024)}MB)"
        )
    description = (
        f"Processing Media Asset: {asset.name} "
        f"({asset.mime_type or asset.kind.value}). "
        f"Source file id: {asset.id}. No transcript text attached."
    )
    return OrchestrationRequest(raw_input=description, is_media=True)


def build_import_request(url: str) -> OrchestrationRequest:
    """Build a request for an externally hosted recording or document."""
    if not url or not url.strip():
        raise ValueError("Import URL is empty")
    return OrchestrationRequest(
        raw_input=f"External Import Requested: {url.strip()}",
        is_media=False,
    )
