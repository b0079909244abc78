import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import models
from app.db import SessionLocal
from app.services.pdv import get_counter_customer


def uid() -> str:
    return str(uuid.uuid4())


def get_or_create_product(
    db: Session,
    sku: str,
    name: str,
    retail_price: str,
    wholesale_price: str,
    stock: int,
    brand: str | None = None,
    barcode: str | None = None,
    description: str | None = None,
) -> models.Product:
    product = db.scalar(select(models.Product).where(models.Product.sku == sku))
    if product:
        product.name = name
        product.retail_price = Decimal(retail_price)
        product.wholesale_price = Decimal(wholesale_price)
        product.stock = stock
        if brand is not None:
            product.brand = brand
        if barcode is not None:
            product.barcode = barcode
        if description is not None:
            product.description = description
        return product
    product = models.Product(
        id=uid(),
        sku=sku,
        name=name,
        description=description,
        brand=brand,
        barcode=barcode,
        retail_price=Decimal(retail_price),
        wholesale_price=Decimal(wholesale_price),
        stock=stock,
        min_stock=2,
        status=models.ProductStatus.active,
    )
    db.add(product)
    db.flush()
    return product


def ensure_volume(
    db: Session,
    product: models.Product,
    size: str,
    unit: str,
    price_adjustment: str = "0",
    barcode: str | None = None,
) -> models.ProductVolume:
    volume = db.scalar(
        select(models.ProductVolume).where(
            models.ProductVolume.product_id == product.id,
            models.ProductVolume.size == size,
            models.ProductVolume.unit == unit,
        )
    )
    if volume:
        volume.price_adjustment = Decimal(price_adjustment)
        if barcode is not None:
            volume.barcode = barcode
        return volume
    volume = models.ProductVolume(
        id=uid(),
        product_id=product.id,
        size=size,
        unit=unit,
        price_adjustment=Decimal(price_adjustment),
        barcode=barcode,
    )
    db.add(volume)
    return volume


def get_or_create_customer(
    db: Session,
    email: str,
    name: str,
    customer_type: models.CustomerType = models.CustomerType.retail,
    phone: str | None = None,
) -> models.Customer:
    normalized = email.strip().lower()
    customer = (
        db.query(models.Customer)
        .filter(models.Customer.email == normalized)
        .first()
    )
    if customer:
        customer.name = name
        customer.type = customer_type
        return customer
    customer = models.Customer(id=uid(), name=name, email=normalized, phone=phone, type=customer_type)
    db.add(customer)
    db.flush()
    return customer


def ensure_address(db: Session, customer: models.Customer, postal_code: str, street: str, number: str, city: str, state: str) -> models.CustomerAddress:
    address = (
        db.query(models.CustomerAddress)
        .filter(
            models.CustomerAddress.customer_id == customer.id,
            models.CustomerAddress.postal_code == postal_code,
            models.CustomerAddress.number == number,
        )
        .first()
    )
    if address:
        return address
    address = models.CustomerAddress(
        id=uid(),
        customer_id=customer.id,
        postal_code=postal_code,
        street=street,
        number=number,
        city=city,
        state=state,
        is_preferred=True,
    )
    db.add(address)
    return address


def ensure_coupon(
    db: Session,
    code: str,
    name: str,
    coupon_type: models.CouponType,
    value: str,
    max_discount: str | None = None,
    min_order_value: str | None = None,
    usage_limit: int | None = None,
    days_valid: int | None = None,
) -> models.Coupon:
    normalized = code.strip().upper()
    coupon = db.scalar(select(models.Coupon).where(models.Coupon.code == normalized))
    end_date = datetime.now(timezone.utc) + timedelta(days=days_valid) if days_valid else None
    if coupon:
        coupon.name = name
        coupon.type = coupon_type
        coupon.value = Decimal(value)
        coupon.max_discount = Decimal(max_discount) if max_discount else None
        coupon.min_order_value = Decimal(min_order_value) if min_order_value else None
        coupon.usage_limit = usage_limit
        coupon.end_date = end_date
        coupon.is_active = True
        return coupon
    coupon = models.Coupon(
        id=uid(),
        code=normalized,
        name=name,
        type=coupon_type,
        value=Decimal(value),
        max_discount=Decimal(max_discount) if max_discount else None,
        min_order_value=Decimal(min_order_value) if min_order_value else None,
        usage_limit=usage_limit,
        end_date=end_date,
        is_active=True,
    )
    db.add(coupon)
    return coupon


def main() -> None:
    db: Session = SessionLocal()
    try:
        sauvage = get_or_create_product(
            db, "DIOR-SAUV", "Sauvage", "649.90", "519.90", 12,
            brand="Dior", barcode="3348901250146",
            description="Eau de Toilette masculino.",
        )
        ensure_volume(db, sauvage, "60", "ml", "-180.00", barcode="3348901250160")
        ensure_volume(db, sauvage, "100", "ml", "0", barcode="3348901250153")
        ensure_volume(db, sauvage, "200", "ml", "250.00", barcode="3348901250177")

        good_girl = get_or_create_product(
            db, "CH-GOODGIRL", "Good Girl", "599.00", "479.00", 8,
            brand="Carolina Herrera", barcode="8411061819000",
            description="Eau de Parfum feminino.",
        )
        ensure_volume(db, good_girl, "50", "ml", "-120.00")
        ensure_volume(db, good_girl, "80", "ml", "0")

        get_or_create_product(
            db, "HP-DECANT-10", "Decant 10ml", "49.90", "39.90", 40,
            brand="HP Marcas", barcode="7890000000109",
        )

        ana = get_or_create_customer(db, "ana@example.com", "Ana Souza", phone="11999990000")
        ensure_address(db, ana, "01310100", "Avenida Paulista", "1000", "São Paulo", "SP")
        revenda = get_or_create_customer(
            db, "compras@perfumariacentral.com.br", "Perfumaria Central", models.CustomerType.wholesale
        )
        ensure_address(db, revenda, "30130010", "Rua da Bahia", "250", "Belo Horizonte", "MG")

        ensure_coupon(db, "BEMVINDO10", "Boas-vindas 10%", models.CouponType.percentage, "10", max_discount="100")
        ensure_coupon(
            db, "FRETE30", "R$ 30 de desconto", models.CouponType.fixed, "30",
            min_order_value="200", usage_limit=100, days_valid=30,
        )

        get_counter_customer(db)

        db.commit()
        print("Seed OK")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
