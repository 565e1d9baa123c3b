"""Remote-backed cart store."""
from .api import CartAPI, StorefrontCartAPI
from .models import Cart, CartLine, CartLineInput, CartLineUpdate, Money
from .storage import CART_ID_KEY, CartIdStorage, JsonFileCartIdStorage, MemoryCartIdStorage
from .store import CartStore

__all__ = [
    "CartAPI",
    "StorefrontCartAPI",
    "Cart",
    "CartLine",
    "CartLineInput",
    "CartLineUpdate",
    "Money",
    "CART_ID_KEY",
    "CartIdStorage",
    "JsonFileCartIdStorage",
    "MemoryCartIdStorage",
    "CartStore",
]
