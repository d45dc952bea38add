from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from db.session import Base


class PaymentOrder(Base):
    """Amounts computed at checkout, keyed by the gateway order id.

    Verification re-reads these instead of trusting the client.
    """
    __tablename__ = "payment_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    razorpay_order_id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    base_amount = Column(Numeric(10, 2), nullable=False)
    gst_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    amount_minor = Column(Integer, nullable=False)
    currency = Column(String(8), default="INR", nullable=False)
    receipt = Column(String(64), nullable=False)
    status = Column(String(20), default="created", nullable=False)  # created | paid
    razorpay_payment_id = Column(String(64), nullable=True)
    invoice_number = Column(String(32), unique=True, nullable=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    paid_at = Column(DateTime, nullable=True)
    # Expiry this order granted; replays report it even after a renewal moved the subscription on
    subscription_expires_at = Column(DateTime, nullable=True)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True)
    payment_order_id = Column(Integer, ForeignKey("payment_orders.id"), unique=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), default=0, nullable=False)
    gst_amount = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(8), default="INR", nullable=False)
    status = Column(String(20), default="completed", nullable=False)
    razorpay_order_id = Column(String(64), nullable=False)
    razorpay_payment_id = Column(String(64), unique=True, nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    invoice_number = Column(String(32), unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    __table_args__ = (
        Index("ix_payments_user_created", "user_id", "created_at"),
    )
