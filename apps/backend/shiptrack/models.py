"""Pydantic models for the Shiptrack backend."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


Role = Literal["admin", "staff", "driver", "client"]

ServiceType = Literal["standard", "express", "same_day"]


class Account(BaseModel):
    """User row as stored, including the secrets the API never returns."""

    id: int
    full_name: str
    email: str
    role: Role
    branch_id: Optional[int] = None
    created_at: datetime
    password_hash: str
    active_session_id: Optional[str] = None


class UserOut(BaseModel):
    id: int
    full_name: str
    email: str
    role: Role
    branch_id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account) -> "UserOut":
        return cls(
            id=account.id,
            full_name=account.full_name,
            email=account.email,
            role=account.role,
            branch_id=account.branch_id,
            created_at=account.created_at,
        )


class RegisterRequest(BaseModel):
    full_name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6, max_length=72)
    role: Role = "client"
    branch_id: Optional[int] = None


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    token: str
    user: UserOut


class RoleUpdateRequest(BaseModel):
    role: Role
    branch_id: Optional[int] = None


class MessageResponse(BaseModel):
    msg: str


class Branch(BaseModel):
    id: int
    branch_name: str
    branch_address: str
    created_at: datetime


class BranchIn(BaseModel):
    branch_name: str = Field(min_length=1)
    branch_address: str = Field(min_length=1)


class Rate(BaseModel):
    service_type: ServiceType
    price_per_kg: float = Field(ge=0)
    updated_at: datetime


class RateIn(BaseModel):
    price_per_kg: float = Field(ge=0)


class ShipmentUpdate(BaseModel):
    id: int
    shipment_id: int
    location: Optional[str] = None
    status_update: str
    timestamp: datetime


class Shipment(BaseModel):
    id: int
    tracking_number: str
    client_id: Optional[int] = None
    origin_branch_id: Optional[int] = None
    destination_branch_id: Optional[int] = None
    origin_branch_name: Optional[str] = None
    destination_branch_name: Optional[str] = None
    status: str
    service_type: ServiceType
    weight_kg: float
    price: float = 0.0
    sender_name: str
    sender_phone: Optional[str] = None
    receiver_name: str
    receiver_phone: Optional[str] = None
    is_cod: bool = False
    cod_amount: float = 0.0
    estimated_delivery: Optional[str] = None
    created_at: datetime


class ShipmentCreate(BaseModel):
    client_id: int
    origin_branch_id: int
    destination_branch_id: int
    service_type: ServiceType
    weight_kg: float = Field(gt=0)
    price: float = Field(default=0.0, ge=0)
    sender_name: str = Field(min_length=1)
    sender_phone: Optional[str] = None
    receiver_name: str = Field(min_length=1)
    receiver_phone: Optional[str] = None
    is_cod: bool = False
    cod_amount: float = Field(default=0.0, ge=0)
    estimated_delivery: Optional[str] = None


class ShipmentPatch(BaseModel):
    """Partial shipment edit; `location` + `status_update_message` also append history."""

    client_id: Optional[int] = None
    origin_branch_id: Optional[int] = None
    destination_branch_id: Optional[int] = None
    status: Optional[str] = None
    service_type: Optional[ServiceType] = None
    weight_kg: Optional[float] = Field(default=None, gt=0)
    price: Optional[float] = Field(default=None, ge=0)
    sender_name: Optional[str] = None
    sender_phone: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_phone: Optional[str] = None
    is_cod: Optional[bool] = None
    cod_amount: Optional[float] = Field(default=None, ge=0)
    estimated_delivery: Optional[str] = None

    location: Optional[str] = None
    status_update_message: Optional[str] = None


class UpdateCreate(BaseModel):
    shipment_id: int
    location: Optional[str] = None
    status_update: str = Field(min_length=1)


class TrackingResponse(BaseModel):
    shipment: Shipment
    history: list[ShipmentUpdate] = Field(default_factory=list)
