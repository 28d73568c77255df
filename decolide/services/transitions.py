"""
Stage transition service.

Validates and applies one "advance to next stage" request. Leaving Frame
Ready, Foaming/Fabric Done or Dispatched needs a proof photo, which is
uploaded and attached to the Shopify order before the local order moves.

The order passed in is never mutated; on success a new Order is returned.
Nothing here raises to the caller: every failure comes back as an
AdvanceResult with success=False.
"""
from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional, Protocol

from decolide.adapters.proof_store import UploadedFile
from decolide.engine.models import Order, ProofImage
from decolide.engine.stages import (
    TERMINAL_INDEX,
    MetafieldKey,
    proof_metafield,
    proof_required,
    stage_label,
)
from decolide.errors import DecolideError, ValidationError
from decolide.services.repository import OrderSource
from decolide.trace_logger import log_stage_transition

logger = logging.getLogger(__name__)

# Uploads above this are rejected outright
MAX_PROOF_BYTES = 10 * 1024 * 1024

# Photos on stages without proof are only kept inline (as a data: URI) up to this size
MAX_INLINE_IMAGE_BYTES = 256 * 1024


class ProofStore(Protocol):
    async def upload_image(self, content: bytes, content_type: str, filename: str = ...) -> UploadedFile: ...

    async def set_metadata(self, owner_id: str, key: MetafieldKey, file_ref: str) -> None: ...


@dataclass
class AdvanceResult:
    success: bool
    order: Order
    new_stage_index: Optional[int] = None
    image_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        if not self.success:
            return {"success": False, "error": self.error, "error_kind": self.error_kind}
        return {
            "success": True,
            "order": self.order.to_dict(),
            "new_stage": stage_label(self.new_stage_index),
            "new_stage_index": self.new_stage_index,
            "image_url": self.image_url,
        }


def _data_uri(proof: ProofImage) -> str:
    encoded = base64.b64encode(proof.content).decode("ascii")
    return f"data:{proof.content_type};base64,{encoded}"


class StageTransitionService:
    def __init__(self, source: OrderSource, proof_store: ProofStore):
        self.source = source
        self.proof_store = proof_store

    async def _store_proof(self, order: Order, proof: ProofImage, key: MetafieldKey) -> str:
        """Upload the photo and attach it to the Shopify order. Returns its URL."""
        owner_id = order.gid or await self.source.find_order_gid(order.id)
        uploaded = await self.proof_store.upload_image(proof.content, proof.content_type, proof.filename)
        await self.proof_store.set_metadata(owner_id, key, uploaded.file_ref)
        return uploaded.url

    async def advance_stage(
        self,
        order: Order,
        proof: Optional[ProofImage] = None,
        now: Optional[datetime] = None,
    ) -> AdvanceResult:
        now = now or datetime.now(timezone.utc)
        from_stage = order.current_stage_index
        needs_proof = proof_required(from_stage)
        has_proof = proof is not None and bool(proof.content)

        def _fail(err: DecolideError) -> AdvanceResult:
            log_stage_transition(
                order_id=order.id,
                from_stage=from_stage,
                to_stage=None,
                proof_required=needs_proof,
                proof_supplied=has_proof,
                success=False,
                error=str(err),
                error_kind=err.kind,
            )
            return AdvanceResult(success=False, order=order, error=str(err), error_kind=err.kind)

        if from_stage >= TERMINAL_INDEX:
            return _fail(ValidationError(f"Order {order.id} is already delivered"))

        if needs_proof and not has_proof:
            return _fail(ValidationError("Image upload is mandatory to approve this stage."))

        if has_proof and len(proof.content) > MAX_PROOF_BYTES:
            return _fail(ValidationError(
                f"Image is too large ({len(proof.content)} bytes, limit {MAX_PROOF_BYTES})"
            ))

        image_url = order.image_url
        if needs_proof:
            try:
                image_url = await self._store_proof(order, proof, proof_metafield(from_stage))
            except DecolideError as e:
                logger.error(json.dumps({
                    "event": "stage_proof_failed",
                    "order_id": order.id,
                    "stage": from_stage,
                    "error_kind": e.kind,
                    "error": str(e),
                }))
                return _fail(e)
        elif has_proof and len(proof.content) <= MAX_INLINE_IMAGE_BYTES:
            # Not persisted anywhere; only shown until the next refresh
            image_url = _data_uri(proof)
        elif has_proof:
            logger.info(json.dumps({
                "event": "stage_photo_not_inlined",
                "order_id": order.id,
                "stage": from_stage,
                "size_bytes": len(proof.content),
            }))

        to_stage = from_stage + 1
        advanced = replace(
            order,
            current_stage_index=to_stage,
            stage_entered_at=now,
            image_url=image_url,
        )

        log_stage_transition(
            order_id=order.id,
            from_stage=from_stage,
            to_stage=to_stage,
            proof_required=needs_proof,
            proof_supplied=has_proof,
            success=True,
            image_url=image_url,
        )
        return AdvanceResult(
            success=True,
            order=advanced,
            new_stage_index=to_stage,
            image_url=image_url,
        )
