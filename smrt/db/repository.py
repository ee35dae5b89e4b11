"""
Write paths and common reads over the storefront schema.

Every function works on a caller-supplied Session and leaves transaction
control to the caller (see ``smrt.db.session.transaction``). Constraint
violations surface as StorageError subclasses; nothing is retried here.
"""

from __future__ import annotations

import uuid
from typing import List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from smrt.db.base import Base, update_clock
from smrt.db.models import Product, Review
from smrt.db.relations import eager_options
from smrt.errors import storage_errors

ModelT = TypeVar("ModelT", bound=Base)

# Assigned by the store; callers never supply them.
STORE_ASSIGNED_COLUMNS = frozenset({"id", "created_at", "updated_at"})


def _reject_store_assigned(values: dict) -> None:
    supplied = sorted(STORE_ASSIGNED_COLUMNS.intersection(values))
    if supplied:
        raise ValueError(f"Store-assigned columns cannot be written: {', '.join(supplied)}")


# PUBLIC_INTERFACE
def insert_returning(session: Session, model: Type[ModelT], **values) -> ModelT:
    """
    Insert one row and return it with every store-assigned value populated.

    The flush uses INSERT ... RETURNING, so id, created_at, updated_at and
    column defaults come back from the store in the same round trip.

    Raises:
        ValueError: `values` names id, created_at or updated_at.
    """
    _reject_store_assigned(values)
    row = model(**values)
    session.add(row)
    with storage_errors():
        session.flush()
    return row


# PUBLIC_INTERFACE
def update_returning(session: Session, model: Type[ModelT], row_id: uuid.UUID, **values) -> Optional[ModelT]:
    """
    Update one row by primary key and return its refreshed state.

    updated_at is assigned from the store clock inside the UPDATE itself, so it
    advances even when none of the supplied values differ from what is stored.

    Returns:
        The refreshed row, or None when no row has that id.

    Raises:
        ValueError: `values` names id, created_at or updated_at.
    """
    _reject_store_assigned(values)
    stmt = (
        update(model)
        .where(model.id == row_id)
        .values(updated_at=update_clock(), **values)
        .execution_options(synchronize_session=False)
    )
    with storage_errors():
        result = session.execute(stmt)
    if result.rowcount == 0:
        return None
    return session.get(model, row_id, populate_existing=True)


# PUBLIC_INTERFACE
def delete_row(session: Session, model: Type[Base], row_id: uuid.UUID) -> bool:
    """
    Hard-delete one row by primary key.

    Rejected with ReferentialIntegrityViolation while restricted children
    reference it. Deleting a product removes its images in the same statement.

    Returns:
        bool: True if a row was deleted.
    """
    stmt = delete(model).where(model.id == row_id).execution_options(synchronize_session=False)
    with storage_errors():
        result = session.execute(stmt)
    if result.rowcount:
        # cascaded children may still sit in the identity map
        session.expire_all()
    return bool(result.rowcount)


# PUBLIC_INTERFACE
def submit_review(
    session: Session,
    user_id: uuid.UUID,
    product_id: uuid.UUID,
    rating: int,
    title: Optional[str] = None,
    body: Optional[str] = None,
) -> Review:
    """
    Record a user's review of a product.

    Raises:
        UniquenessViolation: the user already reviewed this product. Retrying
            fails the same way; treat it as "already reviewed".
        DomainViolation: rating outside 1..5.
    """
    return insert_returning(session, Review, user_id=user_id, product_id=product_id, rating=rating, title=title, body=body)


def get_product_by_slug(session: Session, slug: str) -> Optional[Product]:
    """Product with its category and images loaded."""
    stmt = select(Product).where(Product.slug == slug).options(*eager_options(Product, "category", "product_images"))
    return session.scalars(stmt).one_or_none()


def list_category_products(session: Session, category_id: uuid.UUID) -> List[Product]:
    stmt = (
        select(Product)
        .where(Product.category_id == category_id)
        .order_by(Product.name)
        .options(*eager_options(Product, "product_images"))
    )
    return list(session.scalars(stmt))


def list_product_reviews(
    session: Session,
    product_id: uuid.UUID,
    limit: int = 20,
    include: Sequence[str] = ("user",),
) -> List[Review]:
    """Newest reviews first, ordered on the reviewed_at index."""
    stmt = (
        select(Review)
        .where(Review.product_id == product_id)
        .order_by(Review.reviewed_at.desc(), Review.id)
        .limit(limit)
        .options(*eager_options(Review, *include))
    )
    return list(session.scalars(stmt))
