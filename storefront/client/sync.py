import asyncio
from typing import Dict, Iterable, List, NamedTuple, Optional, Union

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storefront.client.api_client import CartApiClient
from storefront.client.cart_store import CartLine, CartMetadata
from storefront.client.inventory_validator import validate, validate_quantity
from storefront.client.notifier import LoggingNotifier, Notifier, safe_notify
from storefront.client.session import CartContext, SessionProvider
from storefront.config import settings
from storefront.errors import CartApiError, InsufficientInventory, InvalidQuantity, StorefrontError, SyncFailure
from storefront.utils.clock import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartView(NamedTuple):
    items: List[CartLine]
    metadata: CartMetadata


class CartSyncCoordinator:
    """
    Keeps a CartContext's store consistent with the server cart.

    Edits are applied to the store first and then sent to the server. A
    failed server call never rolls the store back by hand; it triggers a
    full resync from the server and the original error is re-raised.

    Every public coroutine holds ``context.lock``, so operations on one cart
    run one at a time. Helpers prefixed with ``_`` assume the lock is held.
    """

    def __init__(
        self,
        api: CartApiClient,
        session: SessionProvider,
        context: Optional[CartContext] = None,
        notifier: Optional[Notifier] = None,
        max_retries: Optional[int] = None,
        sleep=asyncio.sleep,
    ):
        self.api = api
        self.session = session
        self.context = context or CartContext.for_session(session)
        self.notifier = notifier or LoggingNotifier()
        self.max_retries = settings.SYNC_MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep

    @property
    def store(self):
        return self.context.store

    def _notify(self, kind: str, message: str):
        safe_notify(self.notifier, kind, message)

    def _retrying(self, max_retries: int) -> AsyncRetrying:
        # waits 1s, 2s, 4s, ... capped at 30s between attempts
        return AsyncRetrying(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(
                multiplier=settings.SYNC_BASE_DELAY_MS / 1000.0,
                exp_base=2,
                max=settings.SYNC_MAX_DELAY_MS / 1000.0,
            ),
            retry=retry_if_exception_type(CartApiError),
            sleep=self._sleep,
            reraise=True,
        )

    async def _fetch_server_cart(self, max_retries: Optional[int] = None) -> List[CartLine]:
        max_retries = self.max_retries if max_retries is None else max_retries
        try:
            async for attempt in self._retrying(max_retries):
                with attempt:
                    n = attempt.retry_state.attempt_number
                    if n > 1:
                        logger.info("Retrying cart fetch (attempt %d/%d)", n, max_retries)
                    payload = await self.api.get_cart()
        except CartApiError as e:
            self._notify("error", "Could not sync your cart. Your changes are kept on this device.")
            raise SyncFailure(max_retries, str(e)) from e
        return [CartLine.from_server(it) for it in payload.get("items", [])]

    # ---- sync ----

    async def _warn_invalid_items(self):
        try:
            report = await self.api.validate_inventory()
        except CartApiError as e:
            logger.warning("Inventory check after sync failed: %s", e)
            return
        invalid = report.get("invalid_items", [])
        if report.get("is_valid", not invalid):
            return
        for it in invalid:
            self.store.update_item_inventory(it["item_id"], it["available_quantity"])
        names = ", ".join(it.get("name") or str(it["product_id"]) for it in invalid)
        self._notify("warning", f"Some items exceed available stock: {names}")

    async def _sync(self, max_retries: Optional[int] = None) -> bool:
        if self.context.anonymous:
            logger.debug("Skipping sync for anonymous cart")
            return False
        lines = await self._fetch_server_cart(max_retries)
        self.store.merge_server_cart(lines)
        self.context.last_sync_at = utcnow()
        await self._warn_invalid_items()
        return True

    async def sync_with_server(self, max_retries: Optional[int] = None) -> bool:
        """
        Replace the store with the server cart.

        Returns False for anonymous carts, which have nothing to sync. Raises
        SyncFailure once the retry budget is spent; the store is untouched then.
        """
        async with self.context.lock:
            return await self._sync(max_retries)

    async def _reconcile(self, cause: Optional[BaseException] = None) -> bool:
        if cause is not None:
            logger.warning("Reconciling cart after server error: %s", cause)
        try:
            return await self._sync()
        except SyncFailure:
            logger.warning("Reconcile could not reach the server; local cart kept")
            return False

    async def reconcile(self, cause: Optional[BaseException] = None) -> bool:
        """Full resync after a failed server call. Never raises SyncFailure."""
        async with self.context.lock:
            return await self._reconcile(cause)

    # ---- edits ----

    async def _check_stock(self, line: CartLine, quantity: int):
        available = await self.api.get_availability(line.product_id, line.variant_id)
        result = validate_quantity(quantity, available)
        if not result.ok:
            if available <= 0:
                self._notify("warning", f"{line.name or 'Item'} is out of stock")
            else:
                self._notify("warning", f"Only {available} items available")
            raise InsufficientInventory(
                line.product_id, quantity, available, variant_id=line.variant_id
            )

    async def add_item(self, line: CartLine) -> CartLine:
        if line.quantity < 1:
            raise InvalidQuantity(line.quantity, "must be at least 1")
        async with self.context.lock:
            existing = self.store.find(line.product_id, line.variant_id)
            combined = line.quantity + (existing.quantity if existing else 0)
            if not self.context.anonymous:
                await self._check_stock(line, combined)

            added = self.store.add_item_locally(line)
            if self.context.anonymous:
                self._notify("success", "Added to cart")
                return added

            try:
                data = await self.api.add_to_cart(line.product_id, line.quantity, line.variant_id)
            except StorefrontError as e:
                await self._reconcile(e)
                raise
            self.store.adopt_server_line(added.id, data)
            self._notify("success", "Added to cart")
            return added

    async def remove_item(self, item_ids: Union[int, Iterable[int]]):
        """Remove one line or a batch. Server removals are sent one after another, in order."""
        ids = [item_ids] if isinstance(item_ids, int) else list(item_ids)
        async with self.context.lock:
            removed = [self.store.remove_item_locally(i) for i in ids]
            removed = [line for line in removed if line is not None]
            if self.context.anonymous or not removed:
                return removed
            try:
                for line in removed:
                    if line.is_local:
                        continue
                    await self.api.remove_from_cart(line.product_id, line.quantity, line.variant_id)
            except StorefrontError as e:
                await self._reconcile(e)
                raise
            self._notify("success", "Removed from cart")
            return removed

    async def update_quantity(self, item_id: int, quantity: int) -> Optional[CartLine]:
        """
        Set a line to ``quantity``. The server receives the difference as an
        add or a remove, never an absolute value.
        """
        if quantity < 1:
            raise InvalidQuantity(quantity, "must be at least 1")
        async with self.context.lock:
            item = self.store.get_item(item_id)
            if item is None:
                # already removed
                return None
            delta = quantity - item.quantity
            if delta == 0:
                return item
            if not self.context.anonymous and delta > 0:
                try:
                    await self._check_stock(item, quantity)
                except InsufficientInventory as e:
                    self.store.update_item_inventory(item_id, e.available)
                    raise

            self.store.update_quantity_locally(item_id, quantity)
            if self.context.anonymous:
                return item

            try:
                if delta > 0:
                    await self.api.add_to_cart(item.product_id, delta, item.variant_id)
                else:
                    await self.api.remove_from_cart(item.product_id, -delta, item.variant_id)
            except StorefrontError as e:
                await self._reconcile(e)
                raise
            return item

    # ---- session transitions ----

    async def _target_quantities(self, server_lines: List[CartLine], local_lines: List[CartLine]) -> Dict:
        """Server lines as the baseline with local lines layered on top, clamped to stock."""
        merged: Dict = {line.key: line for line in server_lines}
        for line in local_lines:
            base = merged.get(line.key)
            merged[line.key] = line.model_copy(
                update={"max_quantity": base.max_quantity if base is not None else None}
            )

        targets = {}
        for key, line in merged.items():
            available = line.max_quantity
            if available is None:
                available = await self.api.get_availability(line.product_id, line.variant_id)
            result = validate(line, available)
            if not result.ok:
                label = line.name or f"product {line.product_id}"
                if result.clamped_quantity == 0:
                    self._notify("warning", f"{label} is no longer available and was removed")
                else:
                    self._notify("warning", f"{label} was reduced to {result.clamped_quantity}")
            targets[key] = result.clamped_quantity
        return targets

    async def sync_anonymous_cart(self) -> bool:
        """
        Fold the anonymous cart into the signed-in user's server cart.

        Local quantities win over server quantities for the same line. On any
        failure the cart stays anonymous with its local lines restored, and
        the error is re-raised.
        """
        async with self.context.lock:
            if not self.context.anonymous:
                return False
            if self.session.current_user_id() is None:
                return False
            snapshot = self.store.snapshot()
            try:
                server_lines = await self._fetch_server_cart()
                baseline = {line.key: line.quantity for line in server_lines}
                targets = await self._target_quantities(server_lines, snapshot)

                for (product_id, variant_id), target in targets.items():
                    delta = target - baseline.get((product_id, variant_id), 0)
                    if delta > 0:
                        await self.api.add_to_cart(product_id, delta, variant_id)
                    elif delta < 0:
                        await self.api.remove_from_cart(product_id, -delta, variant_id)

                self.store.merge_server_cart(await self._fetch_server_cart())
            except Exception:
                self.store.restore(snapshot)
                self.context.anonymous = True
                self._notify("error", "Could not merge your cart; it is kept on this device")
                raise
            self.context.anonymous = False
            self.context.last_sync_at = utcnow()
            self._notify("success", "Cart synced with your account")
            return True

    async def logout(self):
        """Drop back to an anonymous cart that keeps the current lines locally."""
        async with self.context.lock:
            self.context = self.context.as_anonymous()
        self._notify("info", "Signed out; your cart is kept on this device")

    async def on_session_changed(self):
        user_id = self.session.current_user_id()
        if user_id is not None and self.context.anonymous:
            await self.sync_anonymous_cart()
        elif user_id is None and not self.context.anonymous:
            await self.logout()

    def get_cart(self) -> CartView:
        return CartView(items=self.store.items, metadata=self.store.get_cart_metadata())
