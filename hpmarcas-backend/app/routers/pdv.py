"""
Router do PDV: cada terminal trabalha numa sessão identificada por ``session_key``.
Regras de carrinho, rascunho e finalização ficam em app.services.pdv.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session, selectinload

from app import models, schemas
from app.db import get_db
from app.services import pdv as pdv_service
from app.services.pdv import DraftStore, PdvSession
from app.services.pricing import suggest_cash_amounts
from app.services.receipt import format_receipt

router = APIRouter(prefix="/api/pdv", tags=["pdv"])


def get_draft_store(db: Session = Depends(get_db)) -> DraftStore:
    return pdv_service.get_draft_store(db)


def _session_out(session: PdvSession) -> schemas.PdvCartOut:
    cart = session.cart
    return schemas.PdvCartOut(
        session_key=session.session_key,
        recovered=session.recovered,
        removed_items=session.removed_items,
        customer_id=cart.customer_id,
        customer_name=cart.customer_name,
        customer_type=cart.customer_type,
        items=[
            schemas.PdvCartItemOut(
                key=item.key,
                product_id=item.product_id,
                product_name=item.product_name,
                product_sku=item.product_sku,
                volume_id=item.volume_id,
                volume_label=item.volume_label,
                quantity=item.quantity,
                available_stock=item.available_stock,
                list_price=item.list_price,
                unit_price=item.unit_price,
                discount_type=item.discount_type,
                discount_value=item.discount_value,
                manual_price=item.manual_price,
                discount_amount=item.discount_amount,
                subtotal=item.subtotal,
            )
            for item in cart.items
        ],
        item_count=cart.item_count,
        discount_type=cart.discount_type,
        discount_value=cart.discount_value,
        payment_method=cart.payment_method,
        notes=cart.notes,
        subtotal=cart.subtotal,
        discount_amount=cart.discount_amount,
        total=cart.total,
        cash_suggestions=suggest_cash_amounts(cart.total),
    )


# Catálogo


@router.get("/barcode/{barcode}", response_model=schemas.BarcodeLookupOut)
def lookup_barcode(barcode: str, db: Session = Depends(get_db)):
    product, volume = pdv_service.lookup_barcode(db, barcode)
    return schemas.BarcodeLookupOut(
        product_id=product.id,
        name=product.name,
        sku=product.sku,
        barcode=product.barcode,
        retail_price=product.retail_price,
        wholesale_price=product.wholesale_price,
        stock=product.stock,
        volume=schemas.BarcodeVolumeOut.model_validate(volume) if volume else None,
    )


# Sessão


@router.get("/sessions/{session_key}", response_model=schemas.PdvCartOut)
def get_session(session_key: str, store: DraftStore = Depends(get_draft_store)):
    return _session_out(pdv_service.load_session(store, session_key))


@router.post("/sessions/{session_key}/resume", response_model=schemas.PdvCartOut)
def resume_session(
    session_key: str,
    db: Session = Depends(get_db),
    store: DraftStore = Depends(get_draft_store),
):
    return _session_out(pdv_service.resume_session(db, store, session_key))


@router.post("/sessions/{session_key}/recovery/ack")
def acknowledge_recovery(session_key: str, store: DraftStore = Depends(get_draft_store)):
    pdv_service.acknowledge_recovery(store, session_key)
    return {"ok": True}


@router.delete("/sessions/{session_key}", response_model=schemas.PdvCartOut)
def clear_session(session_key: str, store: DraftStore = Depends(get_draft_store)):
    return _session_out(pdv_service.clear_session(store, session_key))


# Itens


@router.post("/sessions/{session_key}/items", response_model=schemas.PdvCartOut)
def add_item(
    session_key: str,
    payload: schemas.PdvItemIn,
    db: Session = Depends(get_db),
    store: DraftStore = Depends(get_draft_store),
):
    session = pdv_service.add_item(db, store, session_key, payload.product_id, payload.quantity, payload.volume_id)
    return _session_out(session)


@router.patch("/sessions/{session_key}/items/{item_key}", response_model=schemas.PdvCartOut)
def update_item_quantity(
    session_key: str,
    item_key: str,
    payload: schemas.PdvQuantityIn,
    store: DraftStore = Depends(get_draft_store),
):
    return _session_out(pdv_service.update_item_quantity(store, session_key, item_key, payload.quantity))


@router.delete("/sessions/{session_key}/items/{item_key}", response_model=schemas.PdvCartOut)
def remove_item(session_key: str, item_key: str, store: DraftStore = Depends(get_draft_store)):
    return _session_out(pdv_service.remove_item(store, session_key, item_key))


@router.put("/sessions/{session_key}/items/{item_key}/discount", response_model=schemas.PdvCartOut)
def apply_item_discount(
    session_key: str,
    item_key: str,
    payload: schemas.PdvItemDiscountIn,
    store: DraftStore = Depends(get_draft_store),
):
    session = pdv_service.apply_item_discount(store, session_key, item_key, payload.type, payload.value)
    return _session_out(session)


@router.put("/sessions/{session_key}/items/{item_key}/price", response_model=schemas.PdvCartOut)
def apply_manual_price(
    session_key: str,
    item_key: str,
    payload: schemas.PdvManualPriceIn,
    store: DraftStore = Depends(get_draft_store),
):
    return _session_out(pdv_service.apply_manual_price(store, session_key, item_key, payload.unit_price))


@router.delete("/sessions/{session_key}/items/{item_key}/adjustments", response_model=schemas.PdvCartOut)
def clear_item_adjustments(session_key: str, item_key: str, store: DraftStore = Depends(get_draft_store)):
    return _session_out(pdv_service.clear_item_adjustments(store, session_key, item_key))


# Venda


@router.put("/sessions/{session_key}/discount", response_model=schemas.PdvCartOut)
def apply_order_discount(
    session_key: str,
    payload: schemas.PdvOrderDiscountIn,
    store: DraftStore = Depends(get_draft_store),
):
    return _session_out(pdv_service.apply_order_discount(store, session_key, payload.type, payload.value))


@router.put("/sessions/{session_key}/customer", response_model=schemas.PdvCartOut)
def set_customer(
    session_key: str,
    payload: schemas.PdvCustomerIn,
    db: Session = Depends(get_db),
    store: DraftStore = Depends(get_draft_store),
):
    session = pdv_service.set_customer(db, store, session_key, payload.customer_id, payload.customer_type)
    return _session_out(session)


@router.put("/sessions/{session_key}/payment", response_model=schemas.PdvCartOut)
def set_payment(
    session_key: str,
    payload: schemas.PdvPaymentIn,
    store: DraftStore = Depends(get_draft_store),
):
    return _session_out(pdv_service.set_payment(store, session_key, payload.payment_method, payload.notes))


@router.post("/sessions/{session_key}/finalize", response_model=schemas.PdvSaleOut)
def finalize_sale(
    session_key: str,
    payload: schemas.PdvFinalizeIn,
    db: Session = Depends(get_db),
    store: DraftStore = Depends(get_draft_store),
):
    result = pdv_service.finalize_sale(
        db,
        store,
        session_key,
        salesperson_name=payload.salesperson_name,
        payment_method=payload.payment_method,
        amount_paid=payload.amount_paid,
        notes=payload.notes,
    )
    sale = (
        db.query(models.Sale)
        .options(selectinload(models.Sale.items))
        .filter(models.Sale.id == result.sale_id)
        .first()
    )
    return {"success": True, "sale": sale, "change_amount": result.change_amount}


@router.get("/sales/{sale_id}/receipt", response_class=PlainTextResponse)
def get_receipt(sale_id: str, db: Session = Depends(get_db)):
    sale = (
        db.query(models.Sale)
        .options(selectinload(models.Sale.items))
        .filter(models.Sale.id == sale_id, models.Sale.order_source == models.OrderSource.pdv)
        .first()
    )
    if not sale:
        raise HTTPException(status_code=404, detail="Venda nao encontrada")
    return format_receipt(sale)
