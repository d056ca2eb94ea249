"""
Tests for CartManager (cart API with local storage fallback)
"""
import asyncio
import json
from types import MappingProxyType
from unittest.mock import Mock

import pytest

from lunchcart.cart import AvailabilityState, CartItem, CartManager, LocalCartStore
from lunchcart.errors import StorageError


def lines(cart):
    return {(item.id, item.quantity) for item in cart}


class TestLocalPath:
    """Operations served from local storage"""

    @pytest.mark.asyncio
    async def test_add_then_get(self, offline_manager, sample_product):
        result = await offline_manager.add_to_cart(sample_product, 2, "alice")

        assert result.success is True
        assert result.error is None
        assert result.message == "Product added to cart successfully"
        assert result.item_count == 2
        assert result.total_items == 1
        assert lines(await offline_manager.get_cart("alice")) == {("dish-101", 2)}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantities", [[1], [2, 3], [1, 1, 1, 1], [99, 99]])
    async def test_repeated_adds_accumulate(self, offline_manager, sample_product, quantities):
        for quantity in quantities:
            await offline_manager.add_to_cart(sample_product, quantity, "alice")

        cart = await offline_manager.get_cart("alice")
        assert lines(cart) == {("dish-101", sum(quantities))}

    @pytest.mark.asyncio
    async def test_carts_are_per_user(self, offline_manager, sample_product):
        await offline_manager.add_to_cart(sample_product, 1, "alice")

        assert await offline_manager.get_cart("bob") == []
        assert await offline_manager.get_cart_item_count("alice") == 1

    @pytest.mark.asyncio
    async def test_remove_present(self, offline_manager, sample_product, second_product):
        await offline_manager.add_to_cart(sample_product, 2, "alice")
        await offline_manager.add_to_cart(second_product, 3, "alice")

        result = await offline_manager.remove_from_cart("dish-101", "alice")

        assert result.success is True
        assert result.item_count == 3
        assert result.remaining_items == 1
        assert lines(result.cart) == {("dish-202", 3)}
        assert lines(await offline_manager.get_cart("alice")) == {("dish-202", 3)}

    @pytest.mark.asyncio
    async def test_remove_absent_is_not_found(self, offline_manager, sample_product, memory_storage):
        await offline_manager.add_to_cart(sample_product, 2, "alice")
        before = memory_storage.get_item("cart_alice")

        result = await offline_manager.remove_from_cart("dish-999", "alice")

        assert result.success is False
        assert result.error == "not_found"
        assert result.message == "Product not found in cart"
        assert memory_storage.get_item("cart_alice") == before

    @pytest.mark.asyncio
    async def test_update_quantity(self, offline_manager, sample_product):
        await offline_manager.add_to_cart(sample_product, 2, "alice")

        result = await offline_manager.update_cart_item_quantity("dish-101", "7", "alice")

        assert result.success is True
        assert result.new_quantity == 7
        assert result.item_count == 7
        assert lines(await offline_manager.get_cart("alice")) == {("dish-101", 7)}

    @pytest.mark.asyncio
    async def test_update_absent_is_not_found(self, offline_manager):
        result = await offline_manager.update_cart_item_quantity("dish-999", 3, "alice")

        assert result.success is False
        assert result.error == "not_found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, 100, -3, 1.5, "many", None])
    async def test_update_out_of_range_rejected(self, offline_manager, sample_product, quantity):
        await offline_manager.add_to_cart(sample_product, 2, "alice")

        result = await offline_manager.update_cart_item_quantity("dish-101", quantity, "alice")

        assert result.success is False
        assert result.error == "validation"
        assert lines(await offline_manager.get_cart("alice")) == {("dish-101", 2)}

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, offline_manager, sample_product):
        await offline_manager.add_to_cart(sample_product, 2, "alice")

        first = await offline_manager.clear_cart("alice")
        second = await offline_manager.clear_cart("alice")

        for result in (first, second):
            assert result.success is True
            assert result.cart == []
            assert result.item_count == 0
        assert await offline_manager.get_cart_item_count("alice") == 0
        assert await offline_manager.get_cart("alice") == []

    @pytest.mark.asyncio
    async def test_discount_aware_total(self, offline_manager):
        product = {"id": "dish-1", "name": "Peking Duck", "price": 100, "discount": 25}
        await offline_manager.add_to_cart(product, 2, "alice")

        assert await offline_manager.calculate_cart_total("alice") == 150.0

    @pytest.mark.asyncio
    async def test_total_mixes_discounted_and_full_price(self, offline_manager, sample_product, second_product):
        await offline_manager.add_to_cart(sample_product, 1, "alice")  # 100 at 25% off
        await offline_manager.add_to_cart(second_product, 2, "alice")  # 30, no discount

        assert await offline_manager.calculate_cart_total("alice") == 135.0

    @pytest.mark.asyncio
    async def test_unreadable_line_does_not_hide_the_rest(self, offline_manager, memory_storage, sample_product):
        memory_storage.set_item("cart_alice", json.dumps([
            {"id": "dish-1", "name": "Rice", "price": 10, "quantity": 2},
            {"id": "dish-2", "name": "Broken", "price": 5, "quantity": float("inf")},
        ]))

        assert lines(await offline_manager.get_cart("alice")) == {("dish-1", 2)}
        result = await offline_manager.add_to_cart(sample_product, 1, "alice")

        assert result.success is True
        assert lines(result.cart) == {("dish-1", 2), ("dish-101", 1)}

    @pytest.mark.asyncio
    async def test_total_ignores_non_finite_discount(self, offline_manager, memory_storage):
        memory_storage.set_item("cart_alice", json.dumps([
            {"id": "dish-1", "name": "Rice", "price": "10", "quantity": 2},
            {"id": "dish-2", "name": "Soup", "price": "5", "discount": "NaN", "quantity": 1},
        ]))

        assert await offline_manager.calculate_cart_total("alice") == 25.0

    @pytest.mark.asyncio
    async def test_add_accepts_any_mapping(self, offline_manager, sample_product):
        result = await offline_manager.add_to_cart(MappingProxyType(sample_product), 1, "alice")

        assert result.success is True
        assert lines(result.cart) == {("dish-101", 1)}

    @pytest.mark.asyncio
    async def test_never_touches_api(self, offline_manager, offline_transport, sample_product):
        await offline_manager.add_to_cart(sample_product, 1)
        await offline_manager.get_cart()
        await offline_manager.calculate_cart_total()

        assert offline_transport.requests == []


class TestValidation:
    """Bad input is rejected before any I/O"""

    @pytest.mark.asyncio
    async def test_invalid_product(self, manager, flaky_transport, memory_storage):
        result = await manager.add_to_cart({"id": "1", "name": "", "price": 5}, 1, "alice")

        assert result.success is False
        assert result.error == "validation"
        assert "name" in result.message
        assert flaky_transport.requests == []
        assert memory_storage.keys() == []

    @pytest.mark.asyncio
    async def test_invalid_quantity(self, manager, flaky_transport, sample_product):
        result = await manager.add_to_cart(sample_product, 0, "alice")

        assert result.error == "validation"
        assert result.message.startswith("Invalid quantity")
        assert flaky_transport.requests == []

    @pytest.mark.asyncio
    async def test_invalid_user_id(self, manager, flaky_transport, sample_product):
        result = await manager.add_to_cart(sample_product, 1, "u" * 51)

        assert result.error == "validation"
        assert "user ID" in result.message
        assert flaky_transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("product_id", [None, "", 42])
    async def test_invalid_product_id(self, manager, product_id):
        remove = await manager.remove_from_cart(product_id, "alice")
        update = await manager.update_cart_item_quantity(product_id, 1, "alice")

        for result in (remove, update):
            assert result.success is False
            assert result.error == "validation"
            assert result.message == "Invalid product ID"

    @pytest.mark.asyncio
    async def test_reads_fall_back_to_guest(self, offline_manager, sample_product):
        await offline_manager.add_to_cart(sample_product, 3)

        assert await offline_manager.get_cart_item_count(None) == 3
        assert lines(await offline_manager.get_cart("   ")) == {("dish-101", 3)}


class TestRemotePath:
    """Operations served by the cart API"""

    @pytest.mark.asyncio
    async def test_add_uses_api(self, manager, cart_repository, memory_storage, sample_product):
        result = await manager.add_to_cart(sample_product, 2, "alice")

        assert result.success is True
        assert result.message == "Product added to cart"
        assert result.item_count == 2
        assert result.total_items == 1
        assert cart_repository.count("alice") == 2
        assert memory_storage.keys() == []
        assert manager.is_remote_available is True

    @pytest.mark.asyncio
    async def test_result_reflects_server_state(self, manager, cart_repository, sample_product, second_product):
        # Line added behind the manager's back
        cart_repository.add("alice", _api_product(second_product), 4)

        result = await manager.add_to_cart(sample_product, 1, "alice")

        assert lines(result.cart) == {("dish-101", 1), ("dish-202", 4)}
        assert result.item_count == 5

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, manager, sample_product):
        await manager.add_to_cart(sample_product, 2, "alice")
        await manager.add_to_cart(sample_product, 1, "alice")
        assert lines(await manager.get_cart("alice")) == {("dish-101", 3)}

        updated = await manager.update_cart_item_quantity("dish-101", 5, "alice")
        assert updated.new_quantity == 5
        assert updated.item_count == 5

        removed = await manager.remove_from_cart("dish-101", "alice")
        assert removed.remaining_items == 0
        assert removed.item_count == 0

        cleared = await manager.clear_cart("alice")
        assert cleared.success is True
        assert cleared.item_count == 0
        assert manager.is_remote_available is True

    @pytest.mark.asyncio
    async def test_total_and_count_from_api(self, manager, sample_product):
        await manager.add_to_cart(sample_product, 2, "alice")

        # The API sums undiscounted prices
        assert await manager.calculate_cart_total("alice") == 200.0
        assert await manager.get_cart_item_count("alice") == 2


class TestFallback:
    """Switching from the cart API to local storage"""

    @pytest.mark.asyncio
    async def test_failed_call_falls_back(self, manager, flaky_transport, local_store, sample_product):
        flaky_transport.down = True

        result = await manager.add_to_cart(sample_product, 2, "alice")

        assert result.success is True
        assert result.item_count == 2
        assert manager.is_remote_available is False
        assert lines(local_store.get("alice")) == {("dish-101", 2)}

    @pytest.mark.asyncio
    async def test_fallback_is_one_way(self, manager, flaky_transport, cart_repository, sample_product):
        flaky_transport.down = True
        await manager.get_cart("alice")
        assert manager.is_remote_available is False

        flaky_transport.down = False
        calls_before = len(flaky_transport.requests)

        await manager.add_to_cart(sample_product, 1, "alice")
        await manager.update_cart_item_quantity("dish-101", 4, "alice")
        await manager.calculate_cart_total("alice")
        await manager.get_cart_item_count("alice")
        await manager.clear_cart("alice")

        assert len(flaky_transport.requests) == calls_before
        assert cart_repository.count("alice") == 0
        assert manager.is_remote_available is False

    @pytest.mark.asyncio
    async def test_stores_are_not_merged(self, manager, flaky_transport, sample_product, second_product):
        await manager.add_to_cart(sample_product, 1, "alice")
        flaky_transport.down = True

        # Local store starts empty; the API copy is not carried over
        assert await manager.get_cart("alice") == []
        await manager.add_to_cart(second_product, 1, "alice")
        assert lines(await manager.get_cart("alice")) == {("dish-202", 1)}

    @pytest.mark.asyncio
    async def test_total_falls_back_with_discounts(self, manager, flaky_transport, local_store):
        local_store.set("alice", [CartItem(id="dish-1", name="Duck", price=100, quantity=2, discount=25)])
        flaky_transport.down = True

        assert await manager.calculate_cart_total("alice") == 150.0
        assert manager.is_remote_available is False

    @pytest.mark.asyncio
    async def test_count_falls_back(self, manager, flaky_transport, local_store):
        local_store.set("alice", [CartItem(id="dish-1", name="Duck", price=100, quantity=3)])
        flaky_transport.down = True

        assert await manager.get_cart_item_count("alice") == 3

    @pytest.mark.asyncio
    async def test_managers_have_independent_state(self, remote_client, local_store, flaky_transport):
        first = CartManager(remote=remote_client, local=local_store, availability=AvailabilityState())
        second = CartManager(remote=remote_client, local=local_store, availability=AvailabilityState())

        flaky_transport.down = True
        await first.get_cart("alice")

        assert first.is_remote_available is False
        assert second.is_remote_available is True


class TestStartup:
    """Initial availability probe"""

    @pytest.mark.asyncio
    async def test_start_with_api_up(self, manager):
        assert await manager.start() is True
        assert manager.is_remote_available is True
        await manager.close()

    @pytest.mark.asyncio
    async def test_start_with_api_down(self, manager, flaky_transport, sample_product):
        flaky_transport.down = True

        assert await manager.start() is False
        result = await manager.add_to_cart(sample_product, 1, "alice")

        assert result.success is True
        # Probe only; the add never went to the API
        assert len(flaky_transport.requests) == 1
        await manager.close()


class TestStorageFailures:
    """Local persistence failures surface as operation_failed"""

    @pytest.mark.asyncio
    async def test_write_failure(self, offline_transport, sample_product):
        storage = Mock()
        storage.get_item.return_value = None
        storage.set_item.side_effect = StorageError("quota exceeded")
        manager = _offline(offline_transport, LocalCartStore(storage))

        result = await manager.add_to_cart(sample_product, 1, "alice")

        assert result.success is False
        assert result.error == "operation_failed"

    @pytest.mark.asyncio
    async def test_read_failure_gives_empty_cart(self, offline_transport):
        storage = Mock()
        storage.get_item.side_effect = StorageError("disk gone")
        manager = _offline(offline_transport, LocalCartStore(storage))

        assert await manager.get_cart("alice") == []
        assert await manager.get_cart_item_count("alice") == 0
        assert await manager.calculate_cart_total("alice") == 0.0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, offline_transport, sample_product):
        storage = Mock()
        storage.get_item.side_effect = RuntimeError("unexpected")
        manager = _offline(offline_transport, LocalCartStore(storage))

        result = await manager.add_to_cart(sample_product, 1, "alice")

        assert result.success is False
        assert result.error == "operation_failed"
        assert "unexpected" in result.message


class TestNotifications:
    """Cart-changed events"""

    @pytest.mark.asyncio
    async def test_events_on_local_mutations(self, offline_manager, sample_product):
        events = []
        offline_manager.on_cart_changed(events.append)

        await offline_manager.add_to_cart(sample_product, 2, "alice")
        await offline_manager.update_cart_item_quantity("dish-101", 5, "alice")
        await offline_manager.remove_from_cart("dish-101", "alice")
        await offline_manager.clear_cart("alice")

        assert [(e.user_id, e.item_count) for e in events] == [
            ("alice", 2),
            ("alice", 5),
            ("alice", 0),
            ("alice", 0),
        ]

    @pytest.mark.asyncio
    async def test_events_on_remote_mutations(self, manager, sample_product):
        events = []
        manager.on_cart_changed(events.append)

        await manager.add_to_cart(sample_product, 3, "alice")

        assert [(e.user_id, e.item_count) for e in events] == [("alice", 3)]

    @pytest.mark.asyncio
    async def test_no_event_on_failure(self, offline_manager, sample_product):
        events = []
        offline_manager.on_cart_changed(events.append)

        await offline_manager.add_to_cart(sample_product, 0, "alice")
        await offline_manager.remove_from_cart("dish-101", "alice")

        assert events == []

    @pytest.mark.asyncio
    async def test_unsubscribe_and_failing_listener(self, offline_manager, sample_product):
        events = []
        unsubscribe = offline_manager.on_cart_changed(events.append)
        offline_manager.on_cart_changed(Mock(side_effect=RuntimeError("badge gone")))

        result = await offline_manager.add_to_cart(sample_product, 1, "alice")
        unsubscribe()
        await offline_manager.add_to_cart(sample_product, 1, "alice")

        assert result.success is True
        assert len(events) == 1


class TestConcurrency:
    """Concurrent operations within one event loop"""

    @pytest.mark.asyncio
    async def test_concurrent_adds_sum_remotely(self, manager, cart_repository, sample_product):
        await asyncio.gather(
            manager.add_to_cart(sample_product, 2, "alice"),
            manager.add_to_cart(sample_product, 3, "alice"),
        )

        assert cart_repository.count("alice") == 5

    @pytest.mark.asyncio
    async def test_concurrent_adds_sum_locally(self, offline_manager, sample_product):
        await asyncio.gather(*[
            offline_manager.add_to_cart(sample_product, 1, "alice") for _ in range(10)
        ])

        assert await offline_manager.get_cart_item_count("alice") == 10


def _api_product(product: dict):
    from lunchcart.api.models import CartProduct
    return CartProduct(**product)


def _offline(transport, store: LocalCartStore) -> CartManager:
    from lunchcart.cart import RemoteCartClient
    remote = RemoteCartClient("http://testserver/api/cart", transport=transport)
    return CartManager(remote=remote, local=store, availability=AvailabilityState(available=False))
