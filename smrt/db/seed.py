"""
Baseline catalog data for development and test databases.

Seeding inserts the fixed category list, then the fixed products pointing at
those categories. It runs in one transaction (nothing persists if any insert
fails) and reuses rows that already exist (categories by name, products by
slug), so running it twice leaves the store unchanged.

Nothing runs on import; call ``seed()`` or use the ``smrt-seed`` command.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

import click
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from smrt.config import configure_logging, load_settings
from smrt.db import session as db_session
from smrt.db.models import Category, Product

logger = logging.getLogger("smrt.db.seed")

CATEGORY_NAMES = (
    "Mobile & Wearable Tech",
    "Drones & Cameras",
    "Headphones & Speakers",
    "Computers",
    "Tablets",
    "TV & Home Cinema",
)

PRODUCTS = (
    {
        "name": "sai",
        "price_in_cents": 200,
        "body": "asd;flkasdjf",
        "category": "Tablets",
    },
    {
        "name": "haru",
        "price_in_cents": 200,
        "body": "ads;flkjadsf",
        "category": "Drones & Cameras",
    },
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Lowercase ASCII slug: `TV & Home Cinema` -> `tv-and-home-cinema`."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = value.replace("&", " and ").lower()
    return _NON_ALNUM.sub("-", value).strip("-")


@dataclass
class SeedReport:
    categories_created: int = 0
    categories_existing: int = 0
    products_created: int = 0
    products_existing: int = 0


def seed_catalog(
    session: Session,
    categories: Sequence[str] = CATEGORY_NAMES,
    products: Sequence[Mapping] = PRODUCTS,
) -> SeedReport:
    """
    Insert categories then products on an open session.

    The caller owns the transaction. Products name their category by name; the
    name must appear in `categories`.
    """
    report = SeedReport()
    category_ids: Dict[str, object] = {}

    for name in categories:
        existing = session.scalars(select(Category).where(Category.name == name).order_by(Category.created_at)).first()
        if existing is not None:
            category_ids[name] = existing.id
            report.categories_existing += 1
            continue
        category = Category(name=name)
        session.add(category)
        session.flush()
        category_ids[name] = category.id
        report.categories_created += 1
        logger.debug("Seeded category %s (%s)", name, category.id)

    for item in products:
        slug = slugify(item["name"])
        if session.scalar(select(Product.id).where(Product.slug == slug)) is not None:
            report.products_existing += 1
            continue
        try:
            category_id = category_ids[item["category"]]
        except KeyError:
            raise ValueError(f"Product {item['name']!r} references unknown category {item['category']!r}") from None
        session.add(
            Product(
                name=item["name"],
                slug=slug,
                price_in_cents=item["price_in_cents"],
                body=item.get("body"),
                category_id=category_id,
            )
        )
        session.flush()
        report.products_created += 1
        logger.debug("Seeded product %s", slug)

    return report


# PUBLIC_INTERFACE
def seed(factory: Optional[sessionmaker] = None) -> SeedReport:
    """
    Seed the configured database in a single transaction.

    Unlike a bare seed script this reports what it did and classifies failures:
    the store error is re-raised as a StorageError subclass, with the driver
    exception kept on `orig` and `__cause__`.

    Returns:
        SeedReport: rows created and rows already present, per table.

    Raises:
        StorageError: a constraint rejected an insert; the whole seed is rolled back.
    """
    with db_session.transaction(factory) as session:
        report = seed_catalog(session)
    logger.info(
        "Seed complete: %d categories created (%d existing), %d products created (%d existing)",
        report.categories_created,
        report.categories_existing,
        report.products_created,
        report.products_existing,
    )
    return report


@click.command()
@click.option("--create-schema", is_flag=True, help="Create missing tables before seeding.")
@click.option("--verbose", "-v", is_flag=True, help="Log every seeded row.")
def main(create_schema: bool, verbose: bool) -> None:
    """Seed baseline categories and products."""
    configure_logging(logging.DEBUG if verbose else logging.INFO)
    settings = load_settings()
    db_session.configure(settings)
    if create_schema:
        db_session.create_schema()
    report = seed()
    click.echo(f"categories: +{report.categories_created}, products: +{report.products_created}")


if __name__ == "__main__":
    main()
