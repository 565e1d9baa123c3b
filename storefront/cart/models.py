"""Cart read models mirroring the commerce backend's cart payload."""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(populate_by_name=True)


class Money(_WireModel):
    """Monetary amount kept as the decimal string the server sent."""
    amount: str
    currency_code: str = Field(..., alias="currencyCode")


class FeaturedImage(_WireModel):
    url: str
    alt_text: Optional[str] = Field(None, alias="altText")


class ProductSnapshot(_WireModel):
    title: str
    handle: str
    featured_image: Optional[FeaturedImage] = Field(None, alias="featuredImage")


class Merchandise(_WireModel):
    """
    Display snapshot of the purchasable variant taken at last fetch.

    May be stale relative to the catalog; never used to compute charges.
    """
    id: str
    title: str
    price: Money
    product: ProductSnapshot


class CartLine(_WireModel):
    id: str
    quantity: int = Field(..., gt=0)
    merchandise: Merchandise


class CartCost(_WireModel):
    total_amount: Money = Field(..., alias="totalAmount")
    subtotal_amount: Money = Field(..., alias="subtotalAmount")


class Cart(_WireModel):
    """Server-owned cart as last reported by the commerce backend."""
    id: str
    checkout_url: str = Field(..., alias="checkoutUrl")
    total_quantity: int = Field(0, alias="totalQuantity")
    cost: CartCost
    lines: List[CartLine] = Field(default_factory=list)

    @field_validator("lines", mode="before")
    @classmethod
    def flatten_edges(cls, v):
        # GraphQL connection shape: {"edges": [{"node": {...}}]}
        if isinstance(v, dict):
            edges = v.get("edges") or []
            if not all(isinstance(edge, dict) and "node" in edge for edge in edges):
                raise ValueError("lines must be a connection of nodes")
            return [edge["node"] for edge in edges]
        return v


class CartLineInput(_WireModel):
    """Line to create or add, by variant id."""
    merchandise_id: str = Field(..., alias="merchandiseId")
    quantity: int = Field(1, gt=0)


class CartLineUpdate(_WireModel):
    """Quantity change for an existing line."""
    id: str
    quantity: int = Field(..., gt=0)
