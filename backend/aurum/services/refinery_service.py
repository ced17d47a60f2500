# Overview: Service-layer operations for the refinery; scrap batching, receipt and use of refined metal.

"""
Refinery Service

Scrap (OldMetalItem, AVAILABLE) is grouped into a batch and sent out;
the refiner returns `refined_weight` at `touch` percent, fixing the
batch's pure_weight. That fine metal is then spent three ways:

    VENDOR     pays down a vendor balance (REFINERY_PAYMENT, negative)
    SHOP       repays a neighbour shop (BORROW_REPAY on the metal column)
    INVENTORY  goes back on the shelf as a RAW item

used_weight accumulates and may never pass pure_weight.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import OldMetalItem, RefineryBatch
from ..models.enums import BatchStatus, MetalType, ScrapStatus, ShopTxnType, TransferTarget, VendorTxnType
from ..validation import (
    WEIGHT_EPSILON,
    ConflictError,
    IntegrityViolation,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_choice,
    parse_int,
    parse_number,
    parse_weight,
    round_weight,
)
from aurum.time_utils import utcnow
from .audit_service import Actor, log_action
from .balances import ShopAmounts
from .concurrency import atomic, lock_for_update
from .document_service import next_batch_number
from .inventory_service import create_refined_item
from .shop_service import post_shop_transaction
from .vendor_service import post_vendor_delta

# Refined pure weight may exceed what was sent by scale error only
RECEIPT_TOLERANCE = 0.1


def _lock_batch(session, batch_id: int) -> RefineryBatch:
    batch = lock_for_update(session.query(RefineryBatch).filter_by(id=batch_id)).first()
    if not batch:
        raise NotFoundError(f"Batch {batch_id} not found")
    return batch


def create_batch(metal_type, item_ids=None, actor: Actor | None = None) -> RefineryBatch:
    """
    Send AVAILABLE scrap of one metal to the refiner.

    With no item_ids every available piece of that metal goes. Any listed
    piece that is not AVAILABLE (or of another metal) fails the batch.
    """
    metal = parse_choice(metal_type, MetalType, "metal_type")
    if item_ids is not None:
        if not isinstance(item_ids, list):
            raise ValidationError("item_ids must be a list")
        item_ids = sorted({parse_int(i, "item_ids", minimum=1) for i in item_ids})

    with atomic() as session:
        query = session.query(OldMetalItem).filter(OldMetalItem.metal_type == metal.value)
        if item_ids:
            query = query.filter(OldMetalItem.id.in_(item_ids))
        else:
            query = query.filter(OldMetalItem.status == ScrapStatus.AVAILABLE.value)
        scrap = lock_for_update(query.order_by(OldMetalItem.id.asc())).all()

        if item_ids:
            found = {piece.id for piece in scrap}
            missing = [i for i in item_ids if i not in found]
            if missing:
                raise NotFoundError(f"{metal.value} scrap items not found: {missing}")
            taken = [piece.id for piece in scrap if piece.status != ScrapStatus.AVAILABLE.value]
            if taken:
                raise ConflictError("Scrap already sent for refining", details={"item_ids": taken})
        if not scrap:
            raise ValidationError(f"No {metal.value} scrap available to refine")

        batch = RefineryBatch(
            batch_no=next_batch_number(session, metal),
            metal_type=metal.value,
            gross_weight=round_weight(sum(piece.gross_weight for piece in scrap)),
            status=BatchStatus.SENT.value,
        )
        session.add(batch)
        session.flush()

        for piece in scrap:
            piece.status = ScrapStatus.BATCHED.value
            piece.batch_id = batch.id
        session.flush()
        batch_id, batch_no, gross, count = batch.id, batch.batch_no, batch.gross_weight, len(scrap)

    log_action(actor, "REFINERY_SEND", f"Batch {batch_no}: {count} pieces, {gross:.3f}g", batch_id)
    return db.session.get(RefineryBatch, batch_id)


def receive_refined(batch_id: int, refined_weight, touch, actor: Actor | None = None) -> RefineryBatch:
    refined = parse_weight(refined_weight, "refined_weight")
    if refined <= 0:
        raise ValidationError("refined_weight must be > 0")
    touch = parse_number(touch, "touch")
    if touch <= 0 or touch > 100:
        raise ValidationError("touch must be between 0 and 100")
    pure = round_weight(refined * touch / 100.0)

    with atomic() as session:
        batch = _lock_batch(session, batch_id)
        if batch.status != BatchStatus.SENT.value:
            raise ConflictError(f"Batch {batch.batch_no} is not awaiting receipt")
        if pure > batch.gross_weight + RECEIPT_TOLERANCE:
            raise IntegrityViolation(
                "Refined pure weight exceeds the scrap sent",
                details={"pure_weight": pure, "gross_weight": batch.gross_weight},
            )

        batch.refined_weight = refined
        batch.touch = touch
        batch.pure_weight = pure
        batch.status = BatchStatus.REFINED.value
        batch.received_date = utcnow()
        session.query(OldMetalItem).filter(OldMetalItem.batch_id == batch.id).update(
            {OldMetalItem.status: ScrapStatus.REFINED.value},
            synchronize_session="fetch",
        )
        batch_no = batch.batch_no

    log_action(actor, "REFINERY_RECEIVE", f"Batch {batch_no}: {refined}g @ {touch}% = {pure}g pure", batch_id)
    return db.session.get(RefineryBatch, batch_id)


def use_stock(
    batch_id: int,
    target,
    weight,
    *,
    target_id=None,
    item_name: str | None = None,
    note: str | None = None,
    actor: Actor | None = None,
) -> dict:
    """
    Spend refined metal from a batch.

    The batch must be REFINED and still hold `weight` (0.01 buffer). The
    batch completes once less than 0.01 g remains.
    """
    target = parse_choice(target, TransferTarget, "target")
    weight = parse_weight(weight, "weight")
    if weight <= 0:
        raise ValidationError("weight must be > 0")
    if target in (TransferTarget.VENDOR, TransferTarget.SHOP):
        if target_id in (None, ""):
            raise ValidationError(f"target_id is required for {target.value}")
        target_id = parse_int(target_id, "target_id", minimum=1)

    with atomic() as session:
        batch = _lock_batch(session, batch_id)
        if batch.status != BatchStatus.REFINED.value:
            raise ConflictError(f"Batch {batch.batch_no} has no refined stock to use")
        remaining = round_weight(batch.pure_weight - batch.used_weight)
        if weight > remaining + WEIGHT_EPSILON:
            raise ConflictError(
                "Not enough refined metal left in batch",
                details={"remaining": remaining, "requested": weight},
            )

        metal = MetalType(batch.metal_type)
        description = optional_text(note) or f"Refined metal from {batch.batch_no}"
        result = {"target": target.value}

        if target == TransferTarget.VENDOR:
            txn = post_vendor_delta(
                session, target_id, VendorTxnType.REFINERY_PAYMENT, -weight,
                description=description,
                repaid_metal_weight=weight,
            )
            result["vendor_transaction_id"] = txn.id
        elif target == TransferTarget.SHOP:
            txn = post_shop_transaction(
                session, target_id, ShopTxnType.BORROW_REPAY,
                ShopAmounts.for_metal(metal, weight),
                description=description,
            )
            result["shop_transaction_id"] = txn.id
        else:
            name = optional_text(item_name) or f"{metal.value.title()} Bar {batch.batch_no}"
            item = create_refined_item(session, metal, name, weight)
            result["item_id"] = item.id
            result["barcode"] = item.barcode

        batch.used_weight = round_weight(batch.used_weight + weight)
        if batch.pure_weight - batch.used_weight < WEIGHT_EPSILON:
            batch.status = BatchStatus.COMPLETED.value
        result.update(batch=batch.to_dict())
        batch_no = batch.batch_no

    log_action(actor, "REFINERY_USE", f"Batch {batch_no}: {weight}g to {target.value}", batch_id)
    return result


def list_batches(status: str | None = None) -> list[RefineryBatch]:
    query = db.session.query(RefineryBatch)
    if status:
        query = query.filter(RefineryBatch.status == parse_choice(status, BatchStatus, "status").value)
    return query.order_by(RefineryBatch.id.desc()).all()


def pending_weight_by_metal() -> dict[str, float]:
    """Gross weight of scrap still waiting to be batched, per metal."""
    rows = (
        db.session.query(OldMetalItem.metal_type, func.coalesce(func.sum(OldMetalItem.gross_weight), 0))
        .filter(OldMetalItem.status == ScrapStatus.AVAILABLE.value)
        .group_by(OldMetalItem.metal_type)
        .all()
    )
    return {metal: round_weight(total) for metal, total in rows}
