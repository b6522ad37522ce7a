import asyncio
from datetime import datetime
from typing import Optional, Protocol

from storefront.client.cart_store import CartLine, CartStore


class SessionProvider(Protocol):
    def current_user_id(self) -> Optional[str]:
        ...


class StaticSession:
    """A session whose user is set explicitly; used by scripts and tests."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id

    def login(self, user_id: str):
        self.user_id = user_id

    def logout(self):
        self.user_id = None


class CartContext:
    """
    Per-session cart state handed explicitly to the sync coordinator.

    Holds the store, whether the cart is still anonymous, when it last
    synced, and the lock that serializes coordinator operations on it.
    """

    def __init__(self, store: Optional[CartStore] = None, anonymous: bool = True):
        self.store = store or CartStore()
        self.anonymous = anonymous
        self.last_sync_at: Optional[datetime] = None
        self.lock = asyncio.Lock()
        self.closed = False

    @classmethod
    def for_session(cls, session: SessionProvider) -> "CartContext":
        return cls(anonymous=session.current_user_id() is None)

    def close(self):
        self.closed = True

    def as_anonymous(self) -> "CartContext":
        """Close this context and return an anonymous one carrying copies of the lines."""
        store = CartStore()
        for line in self.store.items:
            store.add_item_locally(
                CartLine(**line.model_dump(exclude={"id", "error", "max_quantity"}))
            )
        self.close()
        return CartContext(store=store, anonymous=True)
