from fastapi import FastAPI, HTTPException, Depends
from uuid import UUID
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Reservation
    CreateReservationRequest, RejectReservationRequest, CancellationRequestBody,
    ExtraItemsRequestBody, ModificationRequestBody, ResolveRequestBody, ReservationResponse,
    StatusHistoryResponse, CancellationRequestResponse, ExtraConceptRequestResponse,
    ModificationRequestResponse,
    # Pricing & availability
    PricePreviewRequest, CheckAvailabilityRequest, AvailabilityResponse,
    # Catalog
    CreateCabanaClassRequest, CreateConceptRequest, CreateProductRequest,
    CreateCabanaRequest, ConceptProductPriceRequest, CalendarPriceRequest,
    CreatePriceRangeRequest, CreateBlackoutRequest, OpenForReservationRequest,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, get_current_actor, fake_users_db, get_user, users_by_role,
)
from api.error_handlers import setup_exception_handlers
from infrastructure.config import settings, configure_logging
from infrastructure.security import verify_password, create_access_token
from domain.auth import User

from application.catalog_service import CatalogService
from application.services import ReservationService
from application.side_effects import SideEffectDispatcher
from infrastructure.repositories.in_memory_repositories import InMemoryDatabase
from infrastructure.seed import seed_demo_catalog
from infrastructure.side_effect_sinks import (
    InMemoryAuditLog, InMemoryNotificationCenter, InMemoryUserDirectory,
)
from infrastructure.unit_of_work import InMemoryUnitOfWork
from domain.entities import (
    BlackoutWindow, Cabana, CabanaClass, CalendarPrice, Concept, PriceRange, Product,
)
from domain.enums import ReservationStatus, Role
from domain.value_objects import Actor, ExtraItemRequest, PriceBreakdown

configure_logging()

app = FastAPI(
    title="Cabana Reservation API",
    description="Reservation lifecycle and date-range pricing for venue cabanas",
    version="1.0.0"
)
setup_exception_handlers(app)

# Initialize storage and side-effect sinks
database = InMemoryDatabase()
audit_log = InMemoryAuditLog()
notification_center = InMemoryNotificationCenter()
user_directory = InMemoryUserDirectory(users_by_role())
dispatcher = SideEffectDispatcher(
    audit_log, notification_center, user_directory,
    timeout=settings.NOTIFICATION_TIMEOUT_SECONDS
)

if settings.SEED_DEMO_DATA:
    seed_demo_catalog(database)


def uow_factory() -> InMemoryUnitOfWork:
    return InMemoryUnitOfWork(database, dispatcher)


# Dependency injection
def get_reservation_service() -> ReservationService:
    return ReservationService(
        uow_factory,
        currency=settings.CURRENCY,
        allow_past_dates=settings.ALLOW_PAST_DATES
    )

def get_catalog_service() -> CatalogService:
    return CatalogService(uow_factory)

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/reservation-status", tags=["Enum Reference"])
async def get_reservation_statuses():
    """Get all ReservationStatus enum values"""
    return {
        "values": [item.name for item in ReservationStatus],
        "occupying": [item.name for item in ReservationStatus if item.is_occupying],
        "terminal": [item.name for item in ReservationStatus if item.is_terminal]
    }

@app.get("/api/enums/roles", tags=["Enum Reference"])
async def get_roles():
    """Get all Role enum values"""
    return {"values": [item.name for item in Role]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(user.username, user.role.value)
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Request a cabana; the reservation waits for admin approval"""
    reservation = await service.create_reservation(
        cabana_id=request.cabana_id,
        actor=actor,
        guest_name=request.guest_name,
        start=request.start_date,
        end=request.end_date,
        notes=request.notes
    )
    return _reservation_to_response(reservation)

@app.get("/api/reservations", response_model=List[ReservationResponse], tags=["Reservations"])
async def list_reservations(
    status: Optional[ReservationStatus] = None,
    cabana_id: Optional[str] = None,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """List reservations, newest first"""
    reservations = await service.list_reservations(actor, status=status, cabana_id=cabana_id)
    return [_reservation_to_response(r) for r in reservations]

@app.get("/api/reservations/{reservation_id}", response_model=ReservationResponse, tags=["Reservations"])
async def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get reservation by ID"""
    reservation = await service.get_reservation(reservation_id, actor)
    return _reservation_to_response(reservation)

@app.get("/api/reservations/{reservation_id}/history", response_model=List[StatusHistoryResponse], tags=["Reservations"])
async def get_status_history(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Status history, oldest first"""
    history = await service.get_status_history(reservation_id, actor)
    return [
        StatusHistoryResponse(
            from_status=entry.from_status.value if entry.from_status else None,
            to_status=entry.to_status.value,
            event=entry.event.value,
            changed_by=entry.changed_by,
            reason=entry.reason,
            created_at=entry.created_at
        )
        for entry in history
    ]

@app.post("/api/reservations/{reservation_id}/approve", response_model=ReservationResponse, tags=["Reservations"])
async def approve_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Approve a pending reservation and stamp its price"""
    reservation = await service.approve(reservation_id, actor)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/reject", response_model=ReservationResponse, tags=["Reservations"])
async def reject_reservation(
    reservation_id: UUID,
    request: RejectReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Reject a pending reservation"""
    reservation = await service.reject(reservation_id, actor, reason=request.reason)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/cancellations", response_model=CancellationRequestResponse,
          status_code=201, tags=["Change Requests"])
async def request_cancellation(
    reservation_id: UUID,
    request: CancellationRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Ask an admin to cancel an approved reservation"""
    cancellation = await service.request_cancellation(reservation_id, actor, request.reason)
    return CancellationRequestResponse(**cancellation.model_dump())

@app.get("/api/reservations/{reservation_id}/cancellations", response_model=List[CancellationRequestResponse],
         tags=["Change Requests"])
async def list_cancellation_requests(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    requests = await service.list_cancellation_requests(reservation_id, actor)
    return [CancellationRequestResponse(**r.model_dump()) for r in requests]

@app.post("/api/reservations/{reservation_id}/extra-items", response_model=ExtraConceptRequestResponse,
          status_code=201, tags=["Change Requests"])
async def request_extra_items(
    reservation_id: UUID,
    request: ExtraItemsRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Ask an admin to add extra products to an approved reservation"""
    extra_request = await service.request_extra_items(reservation_id, actor, _extra_items(request.items))
    return ExtraConceptRequestResponse(**extra_request.model_dump())

@app.get("/api/reservations/{reservation_id}/extra-items", response_model=List[ExtraConceptRequestResponse],
         tags=["Change Requests"])
async def list_extra_requests(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    requests = await service.list_extra_requests(reservation_id, actor)
    return [ExtraConceptRequestResponse(**r.model_dump()) for r in requests]

@app.post("/api/reservations/{reservation_id}/modifications", response_model=ModificationRequestResponse,
          status_code=201, tags=["Change Requests"])
async def request_modification(
    reservation_id: UUID,
    request: ModificationRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Ask an admin to move an approved reservation or change its guest name"""
    modification = await service.request_modification(
        reservation_id,
        actor,
        new_cabana_id=request.new_cabana_id,
        new_start=request.new_start_date,
        new_end=request.new_end_date,
        new_guest_name=request.new_guest_name
    )
    return _modification_to_response(modification)

@app.get("/api/reservations/{reservation_id}/modifications", response_model=List[ModificationRequestResponse],
         tags=["Change Requests"])
async def list_modification_requests(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    requests = await service.list_modification_requests(reservation_id, actor)
    return [_modification_to_response(r) for r in requests]

@app.post("/api/cancellation-requests/{request_id}/resolve", response_model=ReservationResponse,
          tags=["Change Requests"])
async def resolve_cancellation(
    request_id: UUID,
    request: ResolveRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Approve (cancel the reservation) or reject a cancellation request"""
    reservation = await service.resolve_cancellation(request_id, actor, request.approve, request.note)
    return _reservation_to_response(reservation)

@app.post("/api/extra-requests/{request_id}/resolve", response_model=ReservationResponse,
          tags=["Change Requests"])
async def resolve_extra_items(
    request_id: UUID,
    request: ResolveRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Approve (re-price with the extras) or reject an extra items request"""
    reservation = await service.resolve_extra_items(request_id, actor, request.approve, request.note)
    return _reservation_to_response(reservation)

@app.post("/api/modification-requests/{request_id}/resolve", response_model=ReservationResponse,
          tags=["Change Requests"])
async def resolve_modification(
    request_id: UUID,
    request: ResolveRequestBody,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Approve (move and re-price the stay) or reject a modification request; rejecting needs a note"""
    reservation = await service.resolve_modification(request_id, actor, request.approve, request.note)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-in", response_model=ReservationResponse, tags=["Reservations"])
async def check_in_guest(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Check in guest"""
    reservation = await service.check_in(reservation_id, actor)
    return _reservation_to_response(reservation)

@app.post("/api/reservations/{reservation_id}/check-out", response_model=ReservationResponse, tags=["Reservations"])
async def check_out_guest(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    actor: Actor = Depends(get_current_actor)
):
    """Check out guest"""
    reservation = await service.check_out(reservation_id, actor)
    return _reservation_to_response(reservation)

# ============================================================================
# PRICING & AVAILABILITY ENDPOINTS
# ============================================================================

@app.post("/api/pricing/preview", response_model=PriceBreakdown, tags=["Pricing"])
async def preview_price(
    request: PricePreviewRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Itemized price for a stay, without booking anything"""
    return await service.preview_price(
        cabana_id=request.cabana_id,
        concept_id=request.concept_id,
        start=request.start_date,
        end=request.end_date,
        extra_items=_extra_items(request.extra_items)
    )

@app.post("/api/availability/check", response_model=AvailabilityResponse, tags=["Availability"])
async def check_availability(
    request: CheckAvailabilityRequest,
    service: ReservationService = Depends(get_reservation_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check if a cabana can be booked for a date range"""
    result = await service.check_availability(request.cabana_id, request.start_date, request.end_date)
    return AvailabilityResponse(
        cabana_id=result.cabana_id,
        start_date=result.start,
        end_date=result.end,
        available=result.available,
        reasons=result.reasons
    )

# ============================================================================
# CATALOG ADMINISTRATION ENDPOINTS
# ============================================================================

@app.post("/api/catalog/classes", response_model=CabanaClass, status_code=201, tags=["Catalog"])
async def create_cabana_class(
    request: CreateCabanaClassRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.register_cabana_class(actor, request.class_id, request.name, request.description)

@app.post("/api/catalog/concepts", response_model=Concept, status_code=201, tags=["Catalog"])
async def create_concept(
    request: CreateConceptRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.register_concept(
        actor, request.concept_id, request.name, request.service_fee, request.class_id
    )

@app.put("/api/catalog/concepts/{concept_id}/products", response_model=Concept, tags=["Catalog"])
async def set_concept_product_price(
    concept_id: str,
    request: ConceptProductPriceRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    """Set the concept-specific price of a product"""
    return await service.set_concept_product_price(actor, concept_id, request.product_id, request.price)

@app.post("/api/catalog/products", response_model=Product, status_code=201, tags=["Catalog"])
async def create_product(
    request: CreateProductRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.register_product(actor, request.product_id, request.name, request.sale_price)

@app.delete("/api/catalog/products/{product_id}", response_model=Product, tags=["Catalog"])
async def archive_product(
    product_id: str,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.archive_product(actor, product_id)

@app.post("/api/catalog/cabanas", response_model=Cabana, status_code=201, tags=["Catalog"])
async def create_cabana(
    request: CreateCabanaRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.register_cabana(
        actor,
        request.cabana_id,
        request.name,
        request.class_id,
        concept_id=request.concept_id,
        open_for_reservation=request.open_for_reservation
    )

@app.get("/api/catalog/cabanas/{cabana_id}", response_model=Cabana, tags=["Catalog"])
async def get_cabana(
    cabana_id: str,
    service: CatalogService = Depends(get_catalog_service),
    current_user: User = Depends(get_current_active_user)
):
    return await service.get_cabana(cabana_id)

@app.put("/api/catalog/cabanas/{cabana_id}/open-for-reservation", response_model=Cabana, tags=["Catalog"])
async def set_open_for_reservation(
    cabana_id: str,
    request: OpenForReservationRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.set_open_for_reservation(actor, cabana_id, request.open_for_reservation)

@app.put("/api/catalog/calendar-prices", response_model=CalendarPrice, tags=["Catalog"])
async def set_calendar_price(
    request: CalendarPriceRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    """Set the exact price of one cabana on one day"""
    return await service.set_calendar_price(actor, request.cabana_id, request.day, request.daily_price)

@app.post("/api/catalog/price-ranges", response_model=PriceRange, status_code=201, tags=["Catalog"])
async def add_price_range(
    request: CreatePriceRangeRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.add_price_range(
        actor,
        request.cabana_id,
        request.start_date,
        request.end_date,
        request.daily_price,
        priority=request.priority,
        label=request.label
    )

@app.delete("/api/catalog/price-ranges/{price_range_id}", response_model=PriceRange, tags=["Catalog"])
async def archive_price_range(
    price_range_id: UUID,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.archive_price_range(actor, price_range_id)

@app.post("/api/catalog/blackouts", response_model=BlackoutWindow, status_code=201, tags=["Catalog"])
async def add_blackout(
    request: CreateBlackoutRequest,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.add_blackout(
        actor, request.start_date, request.end_date, request.reason, cabana_id=request.cabana_id
    )

@app.delete("/api/catalog/blackouts/{blackout_id}", response_model=BlackoutWindow, tags=["Catalog"])
async def archive_blackout(
    blackout_id: UUID,
    service: CatalogService = Depends(get_catalog_service),
    actor: Actor = Depends(get_current_actor)
):
    return await service.archive_blackout(actor, blackout_id)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _extra_items(items) -> List[ExtraItemRequest]:
    return [ExtraItemRequest(product_id=item.product_id, quantity=item.quantity) for item in items]

def _modification_to_response(modification) -> ModificationRequestResponse:
    return ModificationRequestResponse(
        request_id=modification.request_id,
        reservation_id=modification.reservation_id,
        requested_by=modification.requested_by,
        new_cabana_id=modification.new_cabana_id,
        new_start_date=modification.new_start,
        new_end_date=modification.new_end,
        new_guest_name=modification.new_guest_name,
        status=modification.status,
        resolved_by=modification.resolved_by,
        resolved_at=modification.resolved_at,
        resolution_note=modification.resolution_note,
        created_at=modification.created_at
    )

def _reservation_to_response(reservation) -> ReservationResponse:
    """Convert Reservation entity to ReservationResponse"""
    return ReservationResponse(
        reservation_id=reservation.reservation_id,
        cabana_id=reservation.cabana_id,
        user_id=reservation.user_id,
        guest_name=reservation.guest_name,
        start_date=reservation.date_range.start,
        end_date=reservation.date_range.end,
        nights=reservation.get_nights(),
        notes=reservation.notes,
        status=reservation.status.value,
        total_price=reservation.total_price,
        price_breakdown=reservation.price_breakdown,
        extra_items=reservation.extra_items,
        rejection_reason=reservation.rejection_reason,
        check_in_at=reservation.check_in_at,
        checked_in_by=reservation.checked_in_by,
        check_out_at=reservation.check_out_at,
        checked_out_by=reservation.checked_out_by,
        created_at=reservation.created_at,
        modified_at=reservation.modified_at,
        version=reservation.version
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
