from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.utils.clock import utcnow


class Cart(Base):
    __tablename__ = "carts"
    id = Column(Integer, primary_key=True, index=True)
    # one cart per user
    user_id = Column(String(64), unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )

    def touch(self):
        self.updated_at = utcnow()
