from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from supportdesk.models import Priority, TicketProduct, TicketStatus


class TicketCreate(BaseModel):
    userName: str = Field(..., min_length=1)
    userEmail: EmailStr
    product: TicketProduct
    subject: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    priority: Priority = "Medium"
    status: TicketStatus = "TO DO"
    userId: Optional[str] = None


class StatusUpdate(BaseModel):
    status: TicketStatus


class AssignRequest(BaseModel):
    developerId: str
