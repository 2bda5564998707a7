from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    licenseKey: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class DeveloperCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    profilePicture: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    currentPassword: Optional[str] = None
