"""Load catalog entries (products with optional variants) into the database."""
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from storefront.models.product import Product
from storefront.repositories.product_repo import ProductRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)


def _to_cents(entry: Dict, cents_key: str, plain_key: str, default: int = 0) -> int:
    if entry.get(cents_key) is not None:
        return int(entry[cents_key])
    if entry.get(plain_key) is not None:
        return int(round(float(entry[plain_key]) * 100))
    return default


def normalize_entry(entry: Dict) -> Dict:
    """Accept either *_cents fields or plain decimal prices, and a few common key spellings."""
    return {
        "sku": entry.get("sku") or entry.get("id"),
        "name": entry.get("name") or entry.get("title") or "",
        "description": entry.get("description"),
        "image": entry.get("image") or next(iter(entry.get("images") or []), None),
        "price_cents": _to_cents(entry, "price_cents", "price"),
        "original_price_cents": _to_cents(entry, "original_price_cents", "original_price", None),
        "available_quantity": int(entry.get("available_quantity", entry.get("stock", 0)) or 0),
        "variants": [
            {
                "name": v.get("name", ""),
                "value": v.get("value", ""),
                "additional_price_cents": _to_cents(v, "additional_price_cents", "additional_price"),
                "available_quantity": int(v.get("available_quantity", v.get("stock", 0)) or 0),
            }
            for v in entry.get("variants") or []
        ],
    }


def seed_catalog(db: Session, entries: Iterable[Dict]) -> List[int]:
    """Create or update every entry in one transaction. Returns the product ids."""
    repo = ProductRepository(db)
    ids = []
    with smart_transaction(db):
        for raw in entries:
            entry = normalize_entry(raw)
            if not entry["sku"]:
                log.warning("Skipping catalog entry without sku: %r", raw)
                continue
            product: Product = repo.create_or_update(
                sku=entry["sku"],
                name=entry["name"],
                price_cents=entry["price_cents"],
                available_quantity=entry["available_quantity"],
                description=entry["description"],
                image=entry["image"],
                original_price_cents=entry["original_price_cents"],
            )
            for v in entry["variants"]:
                repo.upsert_variant(product, **v)
            ids.append(product.id)
    log.info("Seeded %d products", len(ids))
    return ids
