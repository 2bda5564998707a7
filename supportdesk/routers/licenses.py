# supportdesk/routers/licenses.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from supportdesk.db import serialize_doc
from supportdesk.dependencies import get_db, require_roles
from supportdesk.errors import ValidationError
from supportdesk.models import ADMIN
from supportdesk.schemas.license import LicenseGenerate, LicenseValidate
from supportdesk.services import licenses

router = APIRouter(prefix="/licenses", tags=["Licenses"])


@router.post("/generate", status_code=201)
async def generate_licenses(data: LicenseGenerate, db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    generated = await licenses.generate(
        db,
        count=data.count,
        product=data.product,
        expires_at=data.expiresAt,
        notes=data.notes,
        created_by=admin["_id"],
    )
    return {
        "success": True,
        "message": f"{len(generated)} license key(s) generated successfully",
        "data": {
            "licenses": [
                serialize_doc({k: lic[k] for k in ("_id", "code", "product", "expiresAt", "createdAt")})
                for lic in generated
            ]
        },
    }


@router.get("")
async def list_licenses(
    used: Optional[bool] = None,
    product: Optional[str] = None,
    db=Depends(get_db),
    admin: dict = Depends(require_roles(ADMIN)),
):
    items, stats = await licenses.list_licenses(db, used=used, product=product)
    return {"success": True, "data": {"licenses": items, "stats": stats}}


# -----------------------------
# Dry-run check used by the registration form (public)
# -----------------------------
@router.post("/validate")
async def validate_license(data: LicenseValidate, db=Depends(get_db)):
    if not data.code:
        raise ValidationError("License code is required")

    license, check = await licenses.validate(db, data.code)
    if license is None:
        return JSONResponse(
            status_code=404,
            content={"success": True, "valid": False, "message": check["reason"], "data": None},
        )
    return {
        "success": True,
        "valid": check["valid"],
        "message": "License key is valid" if check["valid"] else check["reason"],
        "data": {"product": license["product"]} if check["valid"] else None,
    }


@router.delete("/{license_id}")
async def delete_license(license_id: str, db=Depends(get_db), admin: dict = Depends(require_roles(ADMIN))):
    await licenses.delete(db, license_id)
    return {"success": True, "message": "License key deleted successfully"}
