from enum import Enum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from apps.core.db import Base


class DestinationStatus(Enum):
    """Moderation states; only PUBLISHED is visible through the public API."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PUBLISHED = "published"
    REJECTED = "rejected"


destination_category = Table(
    "destination_category",
    Base.metadata,
    Column("destination_id", Integer, ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

destination_characteristic = Table(
    "destination_characteristic",
    Base.metadata,
    Column("destination_id", Integer, ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True),
    Column("characteristic_id", Integer, ForeignKey("characteristics.id", ondelete="CASCADE"), primary_key=True),
)

destination_tag = Table(
    "destination_tag",
    Base.metadata,
    Column("destination_id", Integer, ForeignKey("destinations.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)

    destinations = relationship("Destination", back_populates="region")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    icon = Column(String(100), nullable=True)


class Characteristic(Base):
    __tablename__ = "characteristics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    icon = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    color = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    alt = Column(Text, nullable=True)
    is_main = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)

    destination = relationship("Destination", back_populates="images")


class Destination(Base):
    __tablename__ = "destinations"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    short_description = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    # Moderation
    status = Column(String(32), nullable=False, default=DestinationStatus.DRAFT.value, index=True)

    region_id = Column(Integer, ForeignKey("regions.id", ondelete="SET NULL"), nullable=True, index=True)

    # Coordinates are optional; rows without them never match geo filters
    latitude = Column(Float, CheckConstraint("latitude IS NULL OR (latitude >= -90 AND latitude <= 90)"), nullable=True)
    longitude = Column(Float, CheckConstraint("longitude IS NULL OR (longitude >= -180 AND longitude <= 180)"), nullable=True)

    # Aggregates maintained by the reviews pipeline
    average_rating = Column(Float, nullable=False, default=0.0)
    reviews_count = Column(Integer, nullable=False, default=0)

    price = Column(Numeric(10, 2, asdecimal=False), CheckConstraint("price IS NULL OR price >= 0"), nullable=True)
    is_top = Column(Boolean, nullable=False, default=False)
    is_featured = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    region = relationship("Region", back_populates="destinations")
    categories = relationship("Category", secondary=destination_category, order_by="Category.id")
    characteristics = relationship("Characteristic", secondary=destination_characteristic, order_by="Characteristic.id")
    tags = relationship("Tag", secondary=destination_tag, order_by="Tag.id")
    images = relationship("Image", back_populates="destination", order_by="Image.order", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Destination(id={self.id}, slug='{self.slug}', status='{self.status}')>"
