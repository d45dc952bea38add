from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from db.session import Base


class SettlementTask(Base):
    """Outbox row for the side effects of one verified payment.

    Written in the activation transaction; each step flips its own flag when it commits.
    """
    __tablename__ = "settlement_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_order_id = Column(Integer, ForeignKey("payment_orders.id"), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id"), nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending | done | failed
    payment_recorded = Column(Boolean, default=False, nullable=False)
    commission_settled = Column(Boolean, default=False, nullable=False)
    coupon_consumed = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime, nullable=True)
    __table_args__ = (
        Index("ix_settlement_tasks_status", "status", "created_at"),
    )
