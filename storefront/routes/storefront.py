"""Cart proxy over the Shopify Storefront API."""
import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from storefront.dependencies import get_storefront_client, require_service_key
from storefront.errors import CartNotFoundError, StorefrontError
from storefront.shopify import ShopifyStorefrontClient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/functions/shopify-storefront",
    tags=["storefront"],
    dependencies=[Depends(require_service_key)],
)

MUTATION_ACTIONS = ("cart-create", "cart-add", "cart-update", "cart-remove")


class CartMutationRequest(BaseModel):
    """Body for cart mutations; which fields are required depends on the action."""
    cart_id: Optional[str] = Field(None, alias="cartId")
    lines: Optional[List[Dict[str, Any]]] = None
    line_ids: Optional[List[str]] = Field(None, alias="lineIds")


def _bad_request(message: str) -> StorefrontError:
    return StorefrontError(message, status_code=400)


@router.get("")
async def get_cart(
    action: str = Query(...),
    cart_id: Optional[str] = Query(None, alias="cartId"),
    shopify: ShopifyStorefrontClient = Depends(get_storefront_client),
):
    """Fetch a cart. A cart Shopify no longer knows is returned as null."""
    if action != "cart-get":
        raise _bad_request(f"Unknown action: {action}")
    if not cart_id:
        raise _bad_request("cartId is required")
    return {"cart": await shopify.get_cart(cart_id)}


@router.post("")
async def mutate_cart(
    body: CartMutationRequest,
    action: str = Query(...),
    shopify: ShopifyStorefrontClient = Depends(get_storefront_client),
):
    """Create a cart or change its lines; always answers with the full cart."""
    if action not in MUTATION_ACTIONS:
        raise _bad_request(f"Unknown action: {action}")

    if action == "cart-create":
        if not body.lines:
            raise _bad_request("lines are required")
        cart = await shopify.create_cart(body.lines)
    else:
        if not body.cart_id:
            raise _bad_request("cartId is required")
        if action == "cart-remove":
            if not body.line_ids:
                raise _bad_request("lineIds are required")
            cart = await shopify.remove_lines(body.cart_id, body.line_ids)
        elif not body.lines:
            raise _bad_request("lines are required")
        elif action == "cart-add":
            cart = await shopify.add_lines(body.cart_id, body.lines)
        else:
            cart = await shopify.update_lines(body.cart_id, body.lines)

    if not cart:
        raise CartNotFoundError()
    return {"cart": cart}
