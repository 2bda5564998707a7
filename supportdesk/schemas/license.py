from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from supportdesk.models import LicenseProduct


class LicenseGenerate(BaseModel):
    count: int = 1
    product: LicenseProduct = "All Products"
    expiresAt: Optional[datetime] = None
    notes: str = ""


class LicenseValidate(BaseModel):
    code: Optional[str] = None
