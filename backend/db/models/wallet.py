from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from db.session import Base


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    balance = Column(Numeric(12, 2), default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    upi_id = Column(String(100), nullable=True)
    bank_account_number = Column(String(34), nullable=True)
    bank_ifsc = Column(String(11), nullable=True)
    bank_name = Column(String(100), nullable=True)
    status = Column(String(20), default="pending", nullable=False)
    # Holds user_id while pending and NULL afterwards; unique => one pending request per user
    pending_user_id = Column(Integer, unique=True, nullable=True)
    admin_note = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime, nullable=True)
    __table_args__ = (
        Index("ix_withdrawals_user_status", "user_id", "status"),
    )
