"""Client-side cart state over a server-authoritative cart."""
import asyncio
import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional
from storefront.cart.api import CartAPI
from storefront.cart.models import Cart, CartLine, CartLineInput, CartLineUpdate
from storefront.cart.storage import CART_ID_KEY, CartIdStorage
from storefront.errors import CartError, CartNotFoundError

logger = logging.getLogger(__name__)

# notifier(level, message) with level "success" or "error"
Notifier = Callable[[str, str], None]


def log_notifier(level: str, message: str) -> None:
    """Default feedback channel: the module logger."""
    if level == "error":
        logger.warning(message)
    else:
        logger.info(message)


class CartStore:
    """
    Mutation API over a remote cart.

    Only the cart id is persisted locally. After every successful call the
    whole local Cart is replaced by the server's response, and items, subtotal
    and count are read straight off it, so nothing displayed is computed here.
    """

    def __init__(
        self,
        api: CartAPI,
        storage: CartIdStorage,
        notifier: Optional[Notifier] = None,
    ):
        """
        Initialize an empty store.

        Args:
            api: Remote cart API
            storage: Persistence for the cart id
            notifier: Callback for user-visible feedback
        """
        self.api = api
        self.storage = storage
        self.notifier = notifier or log_notifier
        self.cart: Optional[Cart] = None
        self.is_open = False
        self._pending = 0
        # Mutations run one at a time in call order
        self._mutation_lock = asyncio.Lock()

    @property
    def is_loading(self) -> bool:
        """True while any mutation is queued or in flight."""
        return self._pending > 0

    @property
    def items(self) -> List[CartLine]:
        return list(self.cart.lines) if self.cart else []

    @property
    def subtotal(self) -> Decimal:
        """Server-reported total, verbatim."""
        return Decimal(self.cart.cost.total_amount.amount) if self.cart else Decimal("0")

    @property
    def count(self) -> int:
        return self.cart.total_quantity if self.cart else 0

    def open_cart(self) -> None:
        self.is_open = True

    def close_cart(self) -> None:
        self.is_open = False

    def _result(self, success: bool, message: str) -> Dict[str, Any]:
        return {
            "success": success,
            "message": message,
            "cart_total": self.subtotal,
            "item_count": self.count,
        }

    def _forget_cart(self) -> None:
        self.cart = None
        self.storage.remove(CART_ID_KEY)

    async def load(self, existing_id: Optional[str] = None) -> Optional[Cart]:
        """
        Load the cart persisted by a previous session.

        A cart the server no longer knows clears the persisted id; this is a
        soft reset, not an error. Transport failures are only logged and the id
        is kept for the next session.

        Args:
            existing_id: Cart id to load (defaults to the persisted one)

        Returns:
            The loaded cart, or None
        """
        cart_id = existing_id or self.storage.get(CART_ID_KEY)
        if not cart_id:
            return None

        try:
            cart = await self.api.get(cart_id)
        except CartError as e:
            logger.error("Failed to load cart %s: %s", cart_id, e, extra={"event": "cart.load_failed"})
            return None

        if cart is None:
            logger.info("Cart %s no longer exists, clearing stored id", cart_id,
                        extra={"event": "cart.expired", "cart_id": cart_id})
            self._forget_cart()
            return None

        self.cart = cart
        return cart

    async def add_line(self, variant_id: str, quantity: int = 1) -> Dict[str, Any]:
        """
        Add a variant, creating the cart on first use.

        Args:
            variant_id: Purchasable variant id
            quantity: Quantity to add

        Returns:
            Dictionary with success flag, message, cart total and item count
        """
        if quantity <= 0:
            logger.warning("Rejected add of %s with quantity %d", variant_id, quantity,
                           extra={"event": "cart.add_failed"})
            return self._fail("Quantity must be at least 1")
        lines = [CartLineInput(merchandise_id=variant_id, quantity=quantity)]
        self._pending += 1
        try:
            async with self._mutation_lock:
                try:
                    if self.cart is None:
                        cart = await self.api.create(lines)
                        self.storage.set(CART_ID_KEY, cart.id)
                    else:
                        cart = await self.api.add(self.cart.id, lines)
                except CartNotFoundError as e:
                    logger.error("Cart expired while adding %s: %s", variant_id, e,
                                 extra={"event": "cart.add_failed"})
                    self._forget_cart()
                    return self._fail("Failed to add to cart")
                except CartError as e:
                    logger.error("Failed to add %s to cart: %s", variant_id, e,
                                 extra={"event": "cart.add_failed"})
                    return self._fail("Failed to add to cart")

                self.cart = cart
                self.is_open = True
                logger.info("Added %dx %s to cart %s", quantity, variant_id, cart.id,
                            extra={"event": "cart.line_added", "cart_id": cart.id})
                return self._succeed("Added to cart!")
        finally:
            self._pending -= 1

    async def update_line_quantity(self, line_id: str, quantity: int) -> Dict[str, Any]:
        """
        Set a line's quantity; zero or less removes the line instead.

        Args:
            line_id: Cart line id
            quantity: New quantity

        Returns:
            Dictionary with success flag, message, cart total and item count
        """
        if quantity <= 0:
            return await self.remove_line(line_id)
        if self.cart is None:
            return self._result(False, "Your cart is empty.")

        self._pending += 1
        try:
            async with self._mutation_lock:
                if self.cart is None:
                    return self._result(False, "Your cart is empty.")
                try:
                    cart = await self.api.update(
                        self.cart.id, [CartLineUpdate(id=line_id, quantity=quantity)]
                    )
                except CartError as e:
                    logger.error("Failed to update line %s: %s", line_id, e,
                                 extra={"event": "cart.update_failed"})
                    if isinstance(e, CartNotFoundError):
                        self._forget_cart()
                    return self._fail("Failed to update quantity")

                self.cart = cart
                return self._result(True, f"Updated quantity to {quantity}")
        finally:
            self._pending -= 1

    async def remove_line(self, line_id: str) -> Dict[str, Any]:
        """
        Remove a line from the cart.

        Args:
            line_id: Cart line id

        Returns:
            Dictionary with success flag, message, cart total and item count
        """
        if self.cart is None:
            return self._result(False, "Your cart is empty.")

        self._pending += 1
        try:
            async with self._mutation_lock:
                if self.cart is None:
                    return self._result(False, "Your cart is empty.")
                try:
                    cart = await self.api.remove(self.cart.id, [line_id])
                except CartError as e:
                    logger.error("Failed to remove line %s: %s", line_id, e,
                                 extra={"event": "cart.remove_failed"})
                    if isinstance(e, CartNotFoundError):
                        self._forget_cart()
                    return self._fail("Failed to remove from cart")

                self.cart = cart
                return self._succeed("Removed from cart")
        finally:
            self._pending -= 1

    def _succeed(self, message: str) -> Dict[str, Any]:
        self.notifier("success", message)
        return self._result(True, message)

    def _fail(self, message: str) -> Dict[str, Any]:
        self.notifier("error", message)
        return self._result(False, message)
