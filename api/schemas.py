"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import RequestStatus, Role
from domain.value_objects import ExtraItemLine, PriceBreakdown, UnavailabilityReason


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    cabana_id: str
    guest_name: str
    start_date: date
    end_date: date
    notes: Optional[str] = None


class RejectReservationRequest(BaseModel):
    reason: Optional[str] = None


class CancellationRequestBody(BaseModel):
    """Cancellation request DTO"""
    reason: str


class ExtraItemSchema(BaseModel):
    product_id: str
    quantity: int


class ExtraItemsRequestBody(BaseModel):
    """Extra items request DTO"""
    items: List[ExtraItemSchema]


class ModificationRequestBody(BaseModel):
    """Modification request DTO; omitted fields keep their current value"""
    new_cabana_id: Optional[str] = None
    new_start_date: Optional[date] = None
    new_end_date: Optional[date] = None
    new_guest_name: Optional[str] = None


class ResolveRequestBody(BaseModel):
    """Approve or reject a pending cancellation / extras request"""
    approve: bool
    note: Optional[str] = None


class ReservationResponse(BaseModel):
    """Reservation response DTO"""
    reservation_id: UUID
    cabana_id: str
    user_id: UUID
    guest_name: str
    start_date: date
    end_date: date
    nights: int
    notes: Optional[str] = None
    status: str
    total_price: Optional[Decimal] = None
    price_breakdown: Optional[PriceBreakdown] = None
    extra_items: List[ExtraItemLine] = []
    rejection_reason: Optional[str] = None
    check_in_at: Optional[datetime] = None
    checked_in_by: Optional[UUID] = None
    check_out_at: Optional[datetime] = None
    checked_out_by: Optional[UUID] = None
    created_at: datetime
    modified_at: datetime
    version: int


class StatusHistoryResponse(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    event: str
    changed_by: UUID
    reason: Optional[str] = None
    created_at: datetime


class CancellationRequestResponse(BaseModel):
    request_id: UUID
    reservation_id: UUID
    requested_by: UUID
    reason: str
    status: RequestStatus
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: datetime


class ExtraConceptRequestResponse(BaseModel):
    request_id: UUID
    reservation_id: UUID
    requested_by: UUID
    items: List[ExtraItemSchema]
    status: RequestStatus
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: datetime


class ModificationRequestResponse(BaseModel):
    request_id: UUID
    reservation_id: UUID
    requested_by: UUID
    new_cabana_id: Optional[str] = None
    new_start_date: Optional[date] = None
    new_end_date: Optional[date] = None
    new_guest_name: Optional[str] = None
    status: RequestStatus
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    created_at: datetime


# ============================================================================
# PRICING & AVAILABILITY SCHEMAS
# ============================================================================

class PricePreviewRequest(BaseModel):
    """Price preview request DTO"""
    cabana_id: str
    concept_id: Optional[str] = None
    start_date: date
    end_date: date
    extra_items: List[ExtraItemSchema] = []


class CheckAvailabilityRequest(BaseModel):
    """Check availability request DTO"""
    cabana_id: str
    start_date: date
    end_date: date


class AvailabilityResponse(BaseModel):
    """Availability response DTO"""
    cabana_id: str
    start_date: date
    end_date: date
    available: bool
    reasons: List[UnavailabilityReason] = []


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================

class CreateCabanaClassRequest(BaseModel):
    class_id: str
    name: str
    description: Optional[str] = None


class CreateConceptRequest(BaseModel):
    concept_id: str
    name: str
    service_fee: Optional[Decimal] = None
    class_id: Optional[str] = None


class CreateProductRequest(BaseModel):
    product_id: str
    name: str
    sale_price: Decimal


class CreateCabanaRequest(BaseModel):
    cabana_id: str
    name: str
    class_id: str
    concept_id: Optional[str] = None
    open_for_reservation: bool = True


class ConceptProductPriceRequest(BaseModel):
    product_id: str
    price: Decimal


class CalendarPriceRequest(BaseModel):
    cabana_id: str
    day: date
    daily_price: Decimal


class CreatePriceRangeRequest(BaseModel):
    """Create price range request DTO"""
    cabana_id: str
    start_date: date
    end_date: date
    daily_price: Decimal
    priority: int = Field(default=0, description="Highest priority wins; ties go to the newest range")
    label: Optional[str] = None


class CreateBlackoutRequest(BaseModel):
    """Create blackout request DTO"""
    start_date: date
    end_date: date
    reason: str
    cabana_id: Optional[str] = Field(default=None, description="Omit for a venue-wide blackout")


class OpenForReservationRequest(BaseModel):
    open_for_reservation: bool


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Role
    disabled: bool
