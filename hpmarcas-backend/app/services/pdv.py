"""
Serviço do PDV (frente de caixa).

O carrinho de cada terminal fica num rascunho durável (tabela pdv_drafts) salvo a cada
alteração; se o terminal cair, a sessão é retomada a partir dele e o operador é avisado
uma vez. A finalização usa as mesmas regras de preço, desconto e estoque do checkout online.
"""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app import models
from app.domain.config.payment_methods import normalize_payment_method, pdv_payment_status
from app.errors import InsufficientStock, NotFound, PersistenceFailed, ValidationFailed
from app.services.cart import Cart, CartItem
from app.services.pricing import ZERO, Number, calculate_change, round_money
from app.services.stock import StockRequest, decrement_for_items, validate_stock

logger = logging.getLogger(__name__)

COUNTER_CUSTOMER_NAME = "Cliente Balcão"
BARCODE_MIN_LENGTH = 8
BARCODE_MAX_LENGTH = 20


def _gen_id() -> str:
    return str(uuid.uuid4())


# --- Rascunho durável ---


@dataclass
class DraftRecord:
    payload: dict
    recovery_pending: bool


class DraftStore(Protocol):
    def load(self, session_key: str) -> DraftRecord | None: ...

    def save(self, session_key: str, payload: dict) -> None: ...

    def acknowledge(self, session_key: str) -> None: ...

    def clear(self, session_key: str) -> None: ...


class SqlDraftStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _get(self, session_key: str) -> models.PdvDraft | None:
        return self.db.query(models.PdvDraft).filter(models.PdvDraft.session_key == session_key).first()

    def load(self, session_key: str) -> DraftRecord | None:
        draft = self._get(session_key)
        if not draft:
            return None
        try:
            payload = json.loads(draft.payload)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable PDV draft session_key=%s", session_key)
            return None
        return DraftRecord(payload=payload if isinstance(payload, dict) else {}, recovery_pending=bool(draft.recovery_pending))

    def save(self, session_key: str, payload: dict) -> None:
        draft = self._get(session_key)
        has_items = bool(payload.get("items"))
        if draft is None:
            draft = models.PdvDraft(session_key=session_key, payload=json.dumps(payload), recovery_pending=has_items)
            self.db.add(draft)
        else:
            draft.payload = json.dumps(payload)
            draft.recovery_pending = has_items
        self.db.commit()

    def acknowledge(self, session_key: str) -> None:
        draft = self._get(session_key)
        if draft is not None and draft.recovery_pending:
            draft.recovery_pending = False
            self.db.commit()

    def clear(self, session_key: str) -> None:
        draft = self._get(session_key)
        if draft is not None:
            self.db.delete(draft)
            self.db.commit()


def get_draft_store(db: Session) -> DraftStore:
    return SqlDraftStore(db)


# --- Sessão ---


@dataclass
class PdvSession:
    session_key: str
    cart: Cart
    recovered: bool = False
    removed_items: list[dict] = field(default_factory=list)


def _normalize_session_key(session_key: str) -> str:
    key = (session_key or "").strip()
    if not key or len(key) > 64:
        raise ValidationFailed("Sessão de PDV inválida", error="invalid_session")
    return key


def load_session(store: DraftStore, session_key: str) -> PdvSession:
    key = _normalize_session_key(session_key)
    record = store.load(key)
    cart = Cart.from_dict(record.payload) if record else Cart()
    return PdvSession(session_key=key, cart=cart)


def save_session(store: DraftStore, session: PdvSession) -> PdvSession:
    store.save(session.session_key, session.cart.to_dict())
    return session


def _load_product(db: Session, product_id: str) -> models.Product | None:
    return (
        db.query(models.Product)
        .options(selectinload(models.Product.volumes))
        .filter(models.Product.id == product_id)
        .first()
    )


def _find_volume(product: models.Product, volume_id: str | None) -> models.ProductVolume | None:
    if not volume_id:
        return None
    return next((v for v in product.volumes if v.id == volume_id), None)


def refresh_cart(db: Session, cart: Cart) -> list[dict]:
    """Reconfere o carrinho com o catálogo: remove inativos/sem estoque e limita a quantidade ao saldo."""
    removed: list[dict] = []
    kept: list[CartItem] = []
    for item in cart.items:
        product = _load_product(db, item.product_id)
        if product is None or product.status != models.ProductStatus.active:
            removed.append({"product_id": item.product_id, "product_name": item.product_name, "reason": "inactive"})
            continue
        stock = int(product.stock or 0)
        if stock <= 0:
            removed.append({"product_id": item.product_id, "product_name": product.name, "reason": "out_of_stock"})
            continue
        volume = _find_volume(product, item.volume_id)
        if item.volume_id and volume is None:
            removed.append({"product_id": item.product_id, "product_name": product.name, "reason": "volume_removed"})
            continue
        item.product_name = product.name
        item.product_sku = product.sku
        item.retail_price = round_money(product.retail_price)
        item.wholesale_price = round_money(product.wholesale_price)
        item.price_adjustment = round_money(volume.price_adjustment) if volume else ZERO
        item.volume_label = volume.label if volume else None
        item.available_stock = stock
        if item.quantity > stock:
            item.quantity = stock
        kept.append(item)
    cart.items = kept
    cart.recalculate()
    return removed


def resume_session(db: Session, store: DraftStore, session_key: str) -> PdvSession:
    key = _normalize_session_key(session_key)
    record = store.load(key)
    if record is None:
        return PdvSession(session_key=key, cart=Cart())
    cart = Cart.from_dict(record.payload)
    removed = refresh_cart(db, cart)
    session = PdvSession(
        session_key=key,
        cart=cart,
        recovered=record.recovery_pending and not cart.is_empty,
        removed_items=removed,
    )
    if removed:
        logger.info("PDV draft refreshed session_key=%s removed=%s", key, len(removed))
        store.save(key, cart.to_dict())
    return session


def acknowledge_recovery(store: DraftStore, session_key: str) -> None:
    store.acknowledge(_normalize_session_key(session_key))


def clear_session(store: DraftStore, session_key: str) -> PdvSession:
    key = _normalize_session_key(session_key)
    store.clear(key)
    return PdvSession(session_key=key, cart=Cart())


# --- Operações do carrinho ---


def add_item(
    db: Session,
    store: DraftStore,
    session_key: str,
    product_id: str,
    quantity: int,
    volume_id: str | None = None,
) -> PdvSession:
    session = load_session(store, session_key)
    product = _load_product(db, product_id)
    if product is None or product.status != models.ProductStatus.active:
        raise NotFound("Produto não encontrado ou inativo", error="product_unavailable", product_id=product_id)
    volume = _find_volume(product, volume_id)
    if volume_id and volume is None:
        raise ValidationFailed("Volume inválido para o produto", error="invalid_volume", product_id=product_id)
    session.cart.add_item(
        CartItem(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            quantity=quantity,
            retail_price=round_money(product.retail_price),
            wholesale_price=round_money(product.wholesale_price),
            volume_id=volume.id if volume else None,
            volume_label=volume.label if volume else None,
            price_adjustment=round_money(volume.price_adjustment) if volume else ZERO,
            available_stock=int(product.stock or 0),
        )
    )
    return save_session(store, session)


def update_item_quantity(store: DraftStore, session_key: str, key: str, quantity: int) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.update_quantity(key, quantity)
    return save_session(store, session)


def remove_item(store: DraftStore, session_key: str, key: str) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.remove_item(key)
    return save_session(store, session)


def apply_item_discount(
    store: DraftStore, session_key: str, key: str, discount_type: models.DiscountType, value: Number
) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.apply_item_discount(key, discount_type, value)
    return save_session(store, session)


def apply_manual_price(store: DraftStore, session_key: str, key: str, unit_price: Number) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.apply_manual_price(key, unit_price)
    return save_session(store, session)


def clear_item_adjustments(store: DraftStore, session_key: str, key: str) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.clear_item_adjustments(key)
    return save_session(store, session)


def apply_order_discount(
    store: DraftStore, session_key: str, discount_type: models.DiscountType | None, value: Number | None
) -> PdvSession:
    session = load_session(store, session_key)
    session.cart.apply_order_discount(discount_type, value)
    return save_session(store, session)


def set_customer(
    db: Session,
    store: DraftStore,
    session_key: str,
    customer_id: str | None,
    customer_type: models.CustomerType | None = None,
) -> PdvSession:
    session = load_session(store, session_key)
    if customer_id:
        customer = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
        if not customer:
            raise NotFound("Cliente não encontrado", error="customer_not_found")
        session.cart.set_customer(customer.id, customer.name, customer_type or customer.type)
    else:
        session.cart.set_customer(None, None, customer_type or models.CustomerType.retail)
    return save_session(store, session)


def set_payment(store: DraftStore, session_key: str, payment_method: str | None, notes: str | None = None) -> PdvSession:
    session = load_session(store, session_key)
    if payment_method:
        try:
            session.cart.set_payment_method(normalize_payment_method(payment_method))
        except ValueError as exc:
            raise ValidationFailed("Forma de pagamento inválida", error="invalid_payment_method") from exc
    else:
        session.cart.set_payment_method(None)
    if notes is not None:
        session.cart.set_notes(notes)
    return save_session(store, session)


# --- Cliente balcão ---


def get_counter_customer(db: Session) -> models.Customer:
    customer = (
        db.query(models.Customer)
        .filter(models.Customer.is_anonymous.is_(True), models.Customer.name == COUNTER_CUSTOMER_NAME)
        .first()
    )
    if customer:
        return customer
    customer = models.Customer(
        id=_gen_id(),
        name=COUNTER_CUSTOMER_NAME,
        type=models.CustomerType.retail,
        is_anonymous=True,
    )
    db.add(customer)
    db.flush()
    logger.info("Counter customer created id=%s", customer.id)
    return customer


# --- Código de barras ---


def normalize_barcode(value: str | None) -> str:
    return "".join(ch for ch in (value or "") if not ch.isspace())


def is_valid_barcode(value: str | None) -> bool:
    code = normalize_barcode(value)
    return code.isdigit() and BARCODE_MIN_LENGTH <= len(code) <= BARCODE_MAX_LENGTH


def lookup_barcode(db: Session, barcode: str) -> tuple[models.Product, models.ProductVolume | None]:
    code = normalize_barcode(barcode)
    if not is_valid_barcode(code):
        raise ValidationFailed("Código de barras inválido", error="invalid_barcode")
    volume = (
        db.query(models.ProductVolume)
        .join(models.Product, models.Product.id == models.ProductVolume.product_id)
        .filter(models.ProductVolume.barcode == code, models.Product.status == models.ProductStatus.active)
        .first()
    )
    if volume:
        return volume.product, volume
    product = (
        db.query(models.Product)
        .filter(models.Product.barcode == code, models.Product.status == models.ProductStatus.active)
        .first()
    )
    if not product:
        raise NotFound("Produto não encontrado para o código informado", error="product_not_found")
    return product, None


# --- Finalização ---


@dataclass
class PdvSaleResult:
    sale_id: str
    total: Decimal
    amount_paid: Decimal
    change_amount: Decimal


def finalize_sale(
    db: Session,
    store: DraftStore,
    session_key: str,
    *,
    salesperson_name: str | None,
    payment_method: str | None = None,
    amount_paid: Number | None = None,
    notes: str | None = None,
) -> PdvSaleResult:
    session = load_session(store, session_key)
    cart = session.cart
    if cart.is_empty:
        raise ValidationFailed("Carrinho vazio", error="empty_cart")

    method = cart.payment_method
    if payment_method:
        try:
            method = normalize_payment_method(payment_method)
        except ValueError as exc:
            raise ValidationFailed("Forma de pagamento inválida", error="invalid_payment_method") from exc
    if method is None:
        raise ValidationFailed("Selecione a forma de pagamento", error="missing_payment_method")

    salesperson = (salesperson_name or "").strip()
    if not salesperson:
        raise ValidationFailed("Informe o nome do vendedor", error="missing_salesperson")

    shortfalls = validate_stock(db, [StockRequest(item.product_id, item.quantity) for item in cart.items])
    if shortfalls:
        raise InsufficientStock(shortfalls)

    total = cart.total
    if method == models.PaymentMethod.cash:
        if amount_paid is None:
            raise ValidationFailed("Informe o valor recebido", error="missing_amount_paid")
        paid = round_money(amount_paid)
        if paid < total:
            raise ValidationFailed(
                "Valor recebido menor que o total da venda",
                error="insufficient_payment",
                total=float(total),
                amount_paid=float(paid),
            )
        change = calculate_change(paid, total)
    else:
        paid = total
        change = ZERO

    try:
        if cart.customer_id:
            customer = db.query(models.Customer).filter(models.Customer.id == cart.customer_id).first()
            if not customer:
                raise NotFound("Cliente não encontrado", error="customer_not_found")
        else:
            customer = get_counter_customer(db)

        sale = models.Sale(
            id=_gen_id(),
            customer_id=customer.id,
            customer_name=customer.name,
            customer_type=cart.customer_type,
            shipping_cost=ZERO,
            subtotal=cart.subtotal,
            discount_percent=cart.discount_percent,
            discount_amount=cart.discount_amount,
            total=total,
            payment_method=method,
            payment_status=pdv_payment_status(method),
            status=models.OrderStatus.completed,
            order_source=models.OrderSource.pdv,
            stock_applied_at=func.now(),
            amount_paid=paid,
            change_amount=change,
            salesperson_name=salesperson,
            notes=(notes or "").strip() or cart.notes,
        )
        db.add(sale)
        db.flush()
        for item in cart.items:
            db.add(
                models.SaleItem(
                    id=_gen_id(),
                    sale_id=sale.id,
                    product_id=item.product_id,
                    volume_id=item.volume_id,
                    product_name=item.product_name,
                    product_sku=item.product_sku,
                    volume_label=item.volume_label,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    discount_amount=item.discount_amount,
                    total_price=item.subtotal,
                )
            )
        decrement_for_items(db, [(item.product_id, item.quantity) for item in cart.items])
        sale_id = sale.id
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to finalize PDV sale session_key=%s", session.session_key)
        raise PersistenceFailed("Erro ao finalizar venda", error="sale_creation_failed") from exc

    store.clear(session.session_key)
    logger.info(
        "PDV sale finalized sale_id=%s total=%s method=%s salesperson=%s",
        sale_id,
        total,
        method.value,
        salesperson,
    )
    return PdvSaleResult(sale_id=sale_id, total=total, amount_paid=paid, change_amount=change)
