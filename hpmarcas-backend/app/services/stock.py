"""
Validação de estoque no momento da venda e baixa atômica.
A validação não reserva nada: entre validar e baixar outro pedido pode consumir o mesmo saldo.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from app import models

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockRequest:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class InventoryLevel:
    product_name: str
    available: int


def merge_requests(requests: Iterable[StockRequest]) -> list[StockRequest]:
    """Soma quantidades do mesmo produto (volumes diferentes dividem o mesmo estoque)."""
    totals: dict[str, int] = {}
    for req in requests:
        totals[req.product_id] = totals.get(req.product_id, 0) + int(req.quantity)
    return [StockRequest(product_id=pid, quantity=qty) for pid, qty in totals.items()]


def find_shortfalls(requests: Iterable[StockRequest], inventory: Mapping[str, InventoryLevel]) -> list[dict]:
    shortfalls: list[dict] = []
    for req in requests:
        level = inventory.get(req.product_id)
        available = int(level.available) if level else 0
        if req.quantity > available:
            shortfalls.append({
                "product_id": req.product_id,
                "product_name": level.product_name if level else req.product_id,
                "requested": int(req.quantity),
                "available": available,
            })
    return shortfalls


def load_inventory(db: Session, product_ids: Iterable[str]) -> dict[str, InventoryLevel]:
    """Saldo dos produtos ativos. Produto inativo fica fora do mapa e conta como saldo 0."""
    ids = list({pid for pid in product_ids})
    if not ids:
        return {}
    rows = (
        db.query(models.Product.id, models.Product.name, models.Product.stock)
        .filter(
            models.Product.id.in_(ids),
            models.Product.status == models.ProductStatus.active,
        )
        .all()
    )
    return {row.id: InventoryLevel(product_name=row.name, available=int(row.stock or 0)) for row in rows}


def validate_stock(db: Session, requests: Iterable[StockRequest]) -> list[dict]:
    merged = merge_requests(requests)
    return find_shortfalls(merged, load_inventory(db, [r.product_id for r in merged]))


def decrement_stock(db: Session, product_id: str, quantity: int) -> None:
    """Baixa ``quantity`` em um único UPDATE, sem deixar o saldo negativo."""
    if quantity <= 0:
        return
    db.execute(
        update(models.Product)
        .where(models.Product.id == product_id)
        .values(
            stock=case(
                (models.Product.stock >= quantity, models.Product.stock - quantity),
                else_=0,
            )
        )
        .execution_options(synchronize_session=False)
    )
    logger.info("Stock decremented product_id=%s quantity=%s", product_id, quantity)


def decrement_for_items(db: Session, items: Iterable[tuple[str, int]]) -> None:
    for product_id, quantity in items:
        decrement_stock(db, product_id, int(quantity))
