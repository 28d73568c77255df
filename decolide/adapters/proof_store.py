from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from typing import Optional

from decolide.adapters.shopify.client import ShopifyClient
from decolide.adapters.storage import SpacesConfig, SpacesStorage
from decolide.engine.stages import MetafieldKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    file_ref: str
    url: str


def _staging_key(filename: str, content_type: str) -> str:
    ext = mimetypes.guess_extension(content_type or "") or ""
    if not ext and "." in filename:
        ext = "." + filename.rsplit(".", 1)[-1].lower()
    return f"proofs/{uuid.uuid4().hex}{ext}"


class ShopifyProofStore:
    """
    Stores stage proof photos as Shopify files referenced from order metafields.

    upload_image() and set_metadata() are separate calls and not atomic: if
    the metafield write fails the uploaded file is left unreferenced.
    """

    def __init__(
        self,
        client: ShopifyClient,
        spaces_config: SpacesConfig,
        storage: Optional[SpacesStorage] = None,
    ):
        self.client = client
        self.spaces_config = spaces_config
        self._storage = storage

    def _get_storage(self) -> SpacesStorage:
        # Built on first upload so stages without proof work without Spaces config
        if self._storage is None:
            self._storage = SpacesStorage(self.spaces_config)
        return self._storage

    async def upload_image(
        self,
        content: bytes,
        content_type: str,
        filename: str = "proof.jpg",
    ) -> UploadedFile:
        storage = self._get_storage()
        key = _staging_key(filename, content_type)
        staged_url = await asyncio.to_thread(storage.put_public, key, content, content_type)

        file_gid, image_url = await self.client.file_create(staged_url, alt=filename)

        logger.info(json.dumps({
            "event": "proof_image_uploaded",
            "file_gid": file_gid,
            "staging_key": key,
            "size_bytes": len(content),
            "shopify_image_ready": bool(image_url),
        }))

        # Shopify may still be processing; the staged copy stays readable
        return UploadedFile(file_ref=file_gid, url=image_url or staged_url)

    async def set_metadata(self, owner_id: str, key: MetafieldKey, file_ref: str) -> None:
        await self.client.metafields_set(owner_id, key, file_ref)
