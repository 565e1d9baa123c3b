"""Persistence models for proxy caches, roles and wholesale applications."""
from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from storefront.data.database.connection import Base


class ProxyCacheEntry(Base):
    """One row per key per proxy variant (namespace). Rows never expire."""

    __tablename__ = "proxy_cache_entries"

    namespace = Column(String(50), primary_key=True)  # processed_image, recipe, blog_post, blog_image
    key = Column(String(1000), primary_key=True)
    status = Column(String(20), nullable=False, index=True)  # processing, completed, failed
    result = Column(JSON, nullable=True)  # Present only when completed
    error = Column(Text, nullable=True)  # Last failure text, observability only
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<ProxyCacheEntry(namespace='{self.namespace}', key='{self.key}', status='{self.status}')>"


class UserRole(Base):
    """Role grant for a BaaS user id."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    role = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<UserRole(user_id='{self.user_id}', role='{self.role}')>"


class WholesaleApplication(Base):
    """Wholesale partnership application submitted from the site."""

    __tablename__ = "wholesale_applications"

    id = Column(String(64), primary_key=True)
    company_name = Column(String(255), nullable=False)
    contact_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    business_type = Column(String(100), nullable=False)
    website_url = Column(String(500), nullable=True)
    locations_count = Column(Integer, nullable=True)
    estimated_monthly_volume = Column(String(100), nullable=True)
    product_interests = Column(JSON, nullable=True)  # ["spirits", "rtd"]
    additional_notes = Column(Text, nullable=True)
    tax_id = Column(String(100), nullable=True)
    status = Column(String(50), default="pending", nullable=False)  # pending, approved, synced_to_shopify
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WholesaleApplication(id='{self.id}', company_name='{self.company_name}', status='{self.status}')>"
