import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db import Base
from storefront.utils.clock import utcnow


class PaymentMethod(enum.Enum):
    CARD = "card"
    UPI = "upi"
    COD = "cod"


class PaymentStatus(enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class Payment(Base):
    """Append-only record of a payment attached to an order."""

    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    transaction_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="payments")


class PaymentAttempt(Base):
    """
    Ledger of checkout attempts that were rolled back.

    Written in its own transaction after the checkout transaction aborts, so
    nothing here points at an order.
    """

    __tablename__ = "payment_attempts"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.FAILED)
    amount_cents = Column(Integer, nullable=False, default=0)
    message = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
