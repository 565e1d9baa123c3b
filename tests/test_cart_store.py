import asyncio
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from storefront.cart import CART_ID_KEY, Cart, CartStore, JsonFileCartIdStorage, MemoryCartIdStorage
from storefront.errors import CartAPIError, CartNotFoundError

PRICES = {"V1": Decimal("10.00"), "V2": Decimal("4.50")}


class FakeCartAPI:
    """Server-side cart state with Shopify-shaped responses."""

    def __init__(self, discount: Decimal = Decimal("0"), delay: float = 0):
        self.carts: Dict[str, Dict[str, List]] = {}
        self.calls: List[str] = []
        self.discount = discount
        self.delay = delay
        self.fail_next: Optional[Exception] = None

    async def _enter(self, name: str):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def _render(self, cart_id: str) -> Cart:
        lines = self.carts[cart_id]
        quantity = sum(q for _, q in lines.values())
        total = sum((PRICES[v] * q for v, q in lines.values()), Decimal("0")) - self.discount
        money = {"amount": str(total), "currencyCode": "USD"}
        return Cart.model_validate({
            "id": cart_id,
            "checkoutUrl": f"https://shop.test/checkout/{cart_id}",
            "totalQuantity": quantity,
            "cost": {"totalAmount": money, "subtotalAmount": money},
            "lines": {"edges": [
                {"node": {
                    "id": line_id,
                    "quantity": q,
                    "merchandise": {
                        "id": v,
                        "title": "Default",
                        "price": {"amount": str(PRICES[v]), "currencyCode": "USD"},
                        "product": {"title": f"Product {v}", "handle": v.lower()},
                    },
                }}
                for line_id, (v, q) in lines.items()
            ]},
        })

    def _cart(self, cart_id: str) -> Dict[str, List]:
        if cart_id not in self.carts:
            raise CartNotFoundError()
        return self.carts[cart_id]

    def _add(self, cart_id, lines):
        cart = self._cart(cart_id)
        for line in lines:
            line_id = f"L-{line.merchandise_id}"
            if line_id in cart:
                cart[line_id][1] += line.quantity
            else:
                cart[line_id] = [line.merchandise_id, line.quantity]

    async def create(self, lines):
        await self._enter("create")
        cart_id = f"C{len(self.carts) + 1}"
        self.carts[cart_id] = {}
        self._add(cart_id, lines)
        return self._render(cart_id)

    async def get(self, cart_id):
        await self._enter("get")
        return self._render(cart_id) if cart_id in self.carts else None

    async def add(self, cart_id, lines):
        await self._enter("add")
        self._add(cart_id, lines)
        return self._render(cart_id)

    async def update(self, cart_id, lines):
        await self._enter("update")
        cart = self._cart(cart_id)
        for line in lines:
            cart[line.id][1] = line.quantity
        return self._render(cart_id)

    async def remove(self, cart_id, line_ids):
        await self._enter("remove")
        cart = self._cart(cart_id)
        for line_id in line_ids:
            cart.pop(line_id, None)
        return self._render(cart_id)


@pytest.fixture
def api():
    return FakeCartAPI()


@pytest.fixture
def storage():
    return MemoryCartIdStorage()


@pytest.fixture
def notices():
    return []


@pytest.fixture
def store(api, storage, notices):
    return CartStore(api, storage, notifier=lambda level, message: notices.append((level, message)))


async def test_first_add_creates_cart_and_persists_id(store, api, storage, notices):
    result = await store.add_line("V1", 1)

    assert result["success"] is True
    assert result["message"] == "Added to cart!"
    assert api.calls == ["create"]
    assert storage.get(CART_ID_KEY) == "C1"
    assert store.count == 1
    assert len(store.items) == 1
    assert store.is_open is True
    assert notices == [("success", "Added to cart!")]


async def test_second_add_reuses_cart(store, api, storage):
    await store.add_line("V1")
    await store.add_line("V2", 2)

    assert api.calls == ["create", "add"]
    assert storage.get(CART_ID_KEY) == "C1"
    assert store.count == 3


async def test_count_and_subtotal_come_from_server(storage):
    api = FakeCartAPI(discount=Decimal("1.50"))
    store = CartStore(api, storage)

    await store.add_line("V1", 2)
    await store.add_line("V2", 1)
    await store.update_line_quantity("L-V1", 3)

    assert store.count == sum(line.quantity for line in store.items) == 4
    # 3 * 10.00 + 4.50 - 1.50 discount reported by the server
    assert store.subtotal == Decimal("33.00")
    assert store.subtotal == Decimal(store.cart.cost.total_amount.amount)


@pytest.mark.parametrize("quantity", [0, -1])
async def test_non_positive_quantity_removes_line(store, api, quantity):
    await store.add_line("V1", 2)

    result = await store.update_line_quantity("L-V1", quantity)

    assert result["success"] is True
    assert result["message"] == "Removed from cart"
    assert "update" not in api.calls
    assert api.calls[-1] == "remove"
    assert store.items == []
    assert store.count == 0


async def test_update_quantity(store):
    await store.add_line("V1", 1)

    result = await store.update_line_quantity("L-V1", 5)

    assert result == {
        "success": True,
        "message": "Updated quantity to 5",
        "cart_total": Decimal("50.00"),
        "item_count": 5,
    }


async def test_update_without_cart_reports_empty(store, api):
    result = await store.update_line_quantity("L-V1", 2)

    assert result["success"] is False
    assert result["message"] == "Your cart is empty."
    assert api.calls == []


async def test_load_restores_persisted_cart(api, notices):
    await CartStore(api, MemoryCartIdStorage()).add_line("V1", 2)
    store = CartStore(api, MemoryCartIdStorage({CART_ID_KEY: "C1"}))

    cart = await store.load()

    assert cart.id == "C1"
    assert store.count == 2


async def test_load_clears_unknown_cart_id(api, notices):
    storage = MemoryCartIdStorage({CART_ID_KEY: "C-expired"})
    store = CartStore(api, storage, notifier=lambda level, message: notices.append((level, message)))

    assert await store.load() is None

    assert store.cart is None
    assert store.items == []
    assert storage.get(CART_ID_KEY) is None
    assert notices == []


async def test_load_keeps_id_on_transport_error(api):
    storage = MemoryCartIdStorage({CART_ID_KEY: "C1"})
    store = CartStore(api, storage)
    api.fail_next = CartAPIError("Cart service unreachable")

    assert await store.load() is None
    assert storage.get(CART_ID_KEY) == "C1"


async def test_failed_mutation_keeps_previous_state(store, api, notices):
    await store.add_line("V1", 2)
    before = (store.cart, store.count, store.subtotal)

    api.fail_next = CartAPIError("network down")
    result = await store.add_line("V2", 1)

    assert result["success"] is False
    assert result["message"] == "Failed to add to cart"
    assert (store.cart, store.count, store.subtotal) == before
    assert notices[-1] == ("error", "Failed to add to cart")


@pytest.mark.parametrize("quantity", [0, -2])
async def test_add_rejects_non_positive_quantity(store, api, notices, quantity):
    result = await store.add_line("V1", quantity)

    assert result["success"] is False
    assert result["message"] == "Quantity must be at least 1"
    assert api.calls == []
    assert store.cart is None
    assert store.is_loading is False
    assert notices == [("error", "Quantity must be at least 1")]


async def test_failed_update_and_remove_keep_state(store, api):
    await store.add_line("V1", 2)
    before = store.cart

    api.fail_next = CartAPIError("boom")
    assert (await store.update_line_quantity("L-V1", 4))["message"] == "Failed to update quantity"
    api.fail_next = CartAPIError("boom")
    assert (await store.remove_line("L-V1"))["message"] == "Failed to remove from cart"

    assert store.cart is before
    assert store.count == 2


async def test_add_to_expired_cart_forgets_it(store, api, storage):
    await store.add_line("V1")
    api.carts.clear()

    result = await store.add_line("V2")

    assert result["success"] is False
    assert store.cart is None
    assert storage.get(CART_ID_KEY) is None

    # Next add starts a fresh cart
    await store.add_line("V2")
    assert api.calls[-1] == "create"
    assert store.count == 1


async def test_concurrent_adds_are_serialized(storage):
    api = FakeCartAPI(delay=0.01)
    store = CartStore(api, storage)

    pending = asyncio.gather(store.add_line("V1"), store.add_line("V2"))
    await asyncio.sleep(0)
    assert store.is_loading is True

    first, second = await pending

    assert first["success"] and second["success"]
    assert api.calls == ["create", "add"]
    assert store.count == 2
    assert store.is_loading is False


async def test_open_and_close(store):
    store.open_cart()
    assert store.is_open
    store.close_cart()
    assert not store.is_open


def test_json_file_storage_round_trip(tmp_path):
    path = tmp_path / "state" / "cart.json"
    storage = JsonFileCartIdStorage(path)

    assert storage.get(CART_ID_KEY) is None
    storage.set(CART_ID_KEY, "C9")
    assert JsonFileCartIdStorage(path).get(CART_ID_KEY) == "C9"
    storage.remove(CART_ID_KEY)
    assert storage.get(CART_ID_KEY) is None


def test_json_file_storage_ignores_corrupt_file(tmp_path):
    path = tmp_path / "cart.json"
    path.write_text("{not json")

    assert JsonFileCartIdStorage(path).get(CART_ID_KEY) is None
