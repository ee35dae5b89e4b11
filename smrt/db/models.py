"""
SQLAlchemy ORM models for the storefront schema.

Integrity lives in the store: enumerations, the review rating check, unique
slugs/emails/external ids, the one-review-per-user-and-product index and the
foreign-key delete policies are all declared here and enforced by the database.

Delete policies:
- product_images.product_id cascades: deleting a product removes its images.
- Every other foreign key rejects deleting a referenced parent (NO ACTION, or
  RESTRICT where the relationship never had an explicit rule).
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smrt.db.base import Base, IdMixin, TimestampMixin, install_updated_at_triggers, store_clock

DEFAULT_ORDER_METADATA = '{"shipping_address": ""}'


class UserRole(str, enum.Enum):
    """Roles a user can hold."""

    ADMIN = "admin"
    CUSTOMER = "customer"


class OrderStatus(str, enum.Enum):
    """Order lifecycle states. Transitions are driven by the application."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _enum_type(enum_cls, name: str) -> Enum:
    # native enum on PostgreSQL, named CHECK constraint elsewhere
    return Enum(enum_cls, name=name, create_constraint=True, values_callable=_enum_values)


class User(IdMixin, TimestampMixin, Base):
    """users table."""

    __tablename__ = "users"

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # opaque identifier issued by the external identity provider
    clerk_user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    role: Mapped[UserRole] = mapped_column(
        _enum_type(UserRole, "user_roles"),
        nullable=False,
        server_default=UserRole.CUSTOMER.value,
    )

    # Relationships
    shipping_addresses: Mapped[List["ShippingAddress"]] = relationship(
        "ShippingAddress", back_populates="user", passive_deletes="all"
    )
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="user", passive_deletes="all")
    reviews: Mapped[List["Review"]] = relationship("Review", back_populates="user", passive_deletes="all")
    review_feedbacks: Mapped[List["ReviewFeedback"]] = relationship(
        "ReviewFeedback", back_populates="user", passive_deletes="all"
    )


class ShippingAddress(IdMixin, TimestampMixin, Base):
    """shipping_addresses table."""

    __tablename__ = "shipping_addresses"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="NO ACTION"), nullable=False)

    address1: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address2: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    zip: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_default: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="shipping_addresses")
    orders: Mapped[List["Order"]] = relationship("Order", back_populates="shipping_address", passive_deletes="all")


class Category(IdMixin, TimestampMixin, Base):
    """categories table."""

    __tablename__ = "categories"

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    products: Mapped[List["Product"]] = relationship("Product", back_populates="category", passive_deletes="all")


class Product(IdMixin, TimestampMixin, Base):
    """products table."""

    __tablename__ = "products"

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    price_in_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="NO ACTION"), nullable=False
    )

    stock: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    category: Mapped[Category] = relationship("Category", back_populates="products")
    # ON DELETE CASCADE in the store removes images; the ORM does not load them first
    product_images: Mapped[List["ProductImage"]] = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    order_items: Mapped[List["OrderItem"]] = relationship("OrderItem", back_populates="product", passive_deletes="all")
    reviews: Mapped[List["Review"]] = relationship("Review", back_populates="product", passive_deletes="all")


class ProductImage(IdMixin, TimestampMixin, Base):
    """product_images table."""

    __tablename__ = "product_images"

    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    product: Mapped[Product] = relationship("Product", back_populates="product_images")


class Order(IdMixin, TimestampMixin, Base):
    """orders table."""

    __tablename__ = "orders"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    total_in_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # opaque checkout session id issued by the payment processor
    stripe_checkout_session_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    shipping_address_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("shipping_addresses.id", ondelete="NO ACTION"), nullable=False
    )

    status: Mapped[OrderStatus] = mapped_column(
        _enum_type(OrderStatus, "order_status"),
        nullable=False,
        server_default=OrderStatus.PENDING.value,
    )

    # "metadata" is reserved on declarative classes, hence the attribute name
    meta: Mapped[Optional[dict]] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
        server_default=DEFAULT_ORDER_METADATA,
    )

    user: Mapped[User] = relationship("User", back_populates="orders")
    shipping_address: Mapped[ShippingAddress] = relationship("ShippingAddress", back_populates="orders")
    order_items: Mapped[List["OrderItem"]] = relationship("OrderItem", back_populates="order", passive_deletes="all")


class OrderItem(IdMixin, TimestampMixin, Base):
    """order_items table."""

    __tablename__ = "order_items"

    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="NO ACTION"), nullable=False)

    # snapshot of the product price when the order was placed
    price_at_purchase_in_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")

    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("orders.id", ondelete="NO ACTION"), nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="order_items")
    product: Mapped[Product] = relationship("Product", back_populates="order_items")


class Review(IdMixin, TimestampMixin, Base):
    """reviews table."""

    __tablename__ = "reviews"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="NO ACTION"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)

    rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    found_helpful: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=store_clock())

    user: Mapped[User] = relationship("User", back_populates="reviews")
    product: Mapped[Product] = relationship("Product", back_populates="reviews")
    review_feedbacks: Mapped[List["ReviewFeedback"]] = relationship(
        "ReviewFeedback", back_populates="review", passive_deletes="all"
    )

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="rating_check"),
        Index("reviews_product_idx", "product_id"),
        Index("reviews_user_idx", "user_id"),
        Index("reviews_reviewed_at_idx", "reviewed_at"),
        Index("reviews_user_product_unique", "user_id", "product_id", unique=True),
    )


class ReviewFeedback(IdMixin, TimestampMixin, Base):
    """review_feedbacks table."""

    __tablename__ = "review_feedbacks"

    review_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("reviews.id", ondelete="NO ACTION"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="NO ACTION"), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    review: Mapped[Review] = relationship("Review", back_populates="review_feedbacks")
    user: Mapped[User] = relationship("User", back_populates="review_feedbacks")


class NewsletterSubscription(IdMixin, TimestampMixin, Base):
    """newsletter_subscriptions table."""

    __tablename__ = "newsletter_subscriptions"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class Contact(IdMixin, TimestampMixin, Base):
    """contacts table."""

    __tablename__ = "contacts"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


install_updated_at_triggers(Base.metadata)
