from decimal import Decimal
from pydantic import BaseModel
from typing import Optional

class WithdrawalCreate(BaseModel):
    amount: Optional[Decimal] = None
    upi_id: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_ifsc: Optional[str] = None
    bank_name: Optional[str] = None

class WithdrawalStatusUpdate(BaseModel):
    status: str  # approved | completed | rejected
    admin_note: Optional[str] = None
