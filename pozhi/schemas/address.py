from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

PIN_CODE_PATTERN = r"^[0-9]{6}$"

class AddressBase(BaseModel):
    label: str = Field(..., min_length=1, max_length=50)
    recipient_name: str = Field(..., min_length=2, max_length=255)
    phone: str = Field(..., min_length=10, max_length=20)
    street_line1: str = Field(..., min_length=5, max_length=255)
    street_line2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    zip_code: str = Field(..., pattern=PIN_CODE_PATTERN)
    country: str = Field(default="India", max_length=100)
    is_default: bool = False

class AddressCreate(AddressBase):
    pass

class AddressUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=50)
    recipient_name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    phone: Optional[str] = Field(default=None, min_length=10, max_length=20)
    street_line1: Optional[str] = Field(default=None, min_length=5, max_length=255)
    street_line2: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    state: Optional[str] = Field(default=None, min_length=2, max_length=100)
    zip_code: Optional[str] = Field(default=None, pattern=PIN_CODE_PATTERN)
    country: Optional[str] = Field(default=None, max_length=100)
    is_default: Optional[bool] = None

class Address(AddressBase):
    id: str
    user_id: str
    created_at: datetime

    class Config:
        from_attributes = True
