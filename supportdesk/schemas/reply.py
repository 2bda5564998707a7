from pydantic import BaseModel, Field


class ReplyCreate(BaseModel):
    ticketId: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=2000)
