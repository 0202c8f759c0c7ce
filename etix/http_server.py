"""HTTP API for the ticket registry."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from etix.bootstrap import bootstrap_registry
from etix.errors import ErrorCode, RegistryError
from etix.models.config import EtixConfig
from etix.models.notifications import AnyNotification
from etix.models.registry import Event, Role
from etix.registry import TicketRegistry

logger = logging.getLogger(__name__)


# Request/Response Models

class EventCreateRequest(BaseModel):
    """Create event request."""
    name: str = Field(..., description="Display name of the event")
    organizer: str = Field(..., description="Principal managing the event")
    max_supply: int = Field(0, description="Ticket limit, 0 means unlimited")
    base_uri: str = Field("", description="Fallback metadata location prefix")


class EventUpdateRequest(BaseModel):
    """Update event request. The organizer cannot be changed."""
    name: str
    max_supply: int
    base_uri: str = ""
    active: bool = True


class MintRequest(BaseModel):
    to: str = Field(..., description="Principal receiving the ticket")
    uri: str = Field("", description="Explicit metadata location, empty to use the event base URI")


class TransferRequest(BaseModel):
    from_owner: str = Field(..., description="Current owner of the ticket")
    to: str = Field(..., description="New owner")


class ApproveRequest(BaseModel):
    approved: Optional[str] = Field(None, description="Delegate to approve, null clears the approval")


class OperatorApprovalRequest(BaseModel):
    approved: bool


class TokenURIRequest(BaseModel):
    uri: str = ""


class CreatedResponse(BaseModel):
    id: int


class TicketResponse(BaseModel):
    """Ticket details including resolved metadata location."""
    id: int
    owner: str
    event_id: int
    uri: str
    resolved_uri: str
    approved: Optional[str] = None


class RoleResponse(BaseModel):
    role: Role
    principal: str
    granted: bool


class ErrorResponse(BaseModel):
    """Error response format."""
    error: Dict[str, Union[str, int, None]] = Field(
        ...,
        description="Error details",
        examples=[{
            "message": "Event 3 not found",
            "type": "registry_error",
            "code": "not_found"
        }]
    )


ERROR_STATUS = {
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.INACTIVE_RESOURCE: 409,
    ErrorCode.CAPACITY_EXCEEDED: 409,
}


# Global service state, set up by the lifespan handler
registry: Optional[TicketRegistry] = None
config: Optional[EtixConfig] = None


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Application lifespan manager."""
    global registry, config
    config = EtixConfig()
    registry = await bootstrap_registry(config)
    logger.info("Ticket registry HTTP server started")
    yield
    logger.info("Ticket registry HTTP server shutting down")


app = FastAPI(
    title="Event Ticket Registry API",
    description="Access-controlled registry of events and the tickets minted against them",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_registry() -> TicketRegistry:
    if registry is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return registry


def get_config() -> EtixConfig:
    if config is None:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return config


def extract_api_key(authorization: Optional[str]) -> Optional[str]:
    """Extract the key from a 'Bearer <key>' or 'Token <key>' header value."""
    if not authorization:
        return None
    authorization = authorization.strip()
    for prefix in ("Bearer ", "Token "):
        if authorization.startswith(prefix):
            return authorization[len(prefix):].strip() or None
    return None


async def get_principal(
    authorization: Optional[str] = Header(None),
    x_principal: Optional[str] = Header(None),
    settings: EtixConfig = Depends(get_config),
) -> str:
    """
    Resolve the calling principal.

    With API keys configured the bearer key is mapped to its principal.
    Otherwise the upstream authentication layer is trusted and the
    X-Principal header is used as given.
    """
    if settings.etix_api_keys:
        key = extract_api_key(authorization)
        principal = settings.etix_api_keys.get(key) if key else None
        if not principal:
            raise HTTPException(status_code=401, detail="Invalid or missing API key")
        return principal

    if not x_principal or not x_principal.strip():
        raise HTTPException(status_code=401, detail="X-Principal header is required")
    return x_principal.strip()


async def _ticket_response(reg: TicketRegistry, ticket_id: int) -> TicketResponse:
    ticket = await reg.get_ticket(ticket_id)
    return TicketResponse(
        id=ticket.id,
        owner=ticket.owner,
        event_id=ticket.event_id,
        uri=ticket.uri,
        resolved_uri=await reg.resolve_uri(ticket_id),
        approved=await reg.get_approved(ticket_id),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Event Ticket Registry API",
        "version": "1.0.0",
        "endpoints": {
            "events": "/v1/events",
            "tickets": "/v1/tickets",
            "roles": "/v1/roles",
            "notifications": "/v1/notifications",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/v1/registry")
async def registry_info(reg: TicketRegistry = Depends(get_registry)):
    """Registry display identity and counters."""
    return {"name": reg.name, "symbol": reg.symbol, **await reg.get_stats()}


# Events

@app.post("/v1/events", response_model=CreatedResponse, status_code=201)
async def create_event(
    request: EventCreateRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> CreatedResponse:
    event_id = await reg.create_event(
        caller, request.name, request.organizer, request.max_supply, request.base_uri
    )
    return CreatedResponse(id=event_id)


@app.get("/v1/events", response_model=List[Event])
async def list_events(reg: TicketRegistry = Depends(get_registry)) -> List[Event]:
    return await reg.list_events()


@app.get("/v1/events/{event_id}", response_model=Event)
async def get_event(event_id: int, reg: TicketRegistry = Depends(get_registry)) -> Event:
    return await reg.get_event(event_id)


@app.put("/v1/events/{event_id}", response_model=Event)
async def update_event(
    event_id: int,
    request: EventUpdateRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> Event:
    return await reg.update_event(
        caller, event_id, request.name, request.max_supply, request.base_uri, request.active
    )


@app.post("/v1/events/{event_id}/tickets", response_model=CreatedResponse, status_code=201)
async def mint_ticket(
    event_id: int,
    request: MintRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> CreatedResponse:
    ticket_id = await reg.mint_ticket(caller, event_id, request.to, request.uri)
    return CreatedResponse(id=ticket_id)


# Tickets

@app.get("/v1/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: int, reg: TicketRegistry = Depends(get_registry)) -> TicketResponse:
    return await _ticket_response(reg, ticket_id)


@app.delete("/v1/tickets/{ticket_id}", status_code=204)
async def revoke_ticket(
    ticket_id: int,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> None:
    await reg.revoke_ticket(caller, ticket_id)


@app.get("/v1/tickets/{ticket_id}/uri")
async def resolve_uri(ticket_id: int, reg: TicketRegistry = Depends(get_registry)):
    return {"ticket_id": ticket_id, "uri": await reg.resolve_uri(ticket_id)}


@app.put("/v1/tickets/{ticket_id}/uri", response_model=TicketResponse)
async def set_token_uri(
    ticket_id: int,
    request: TokenURIRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> TicketResponse:
    await reg.set_token_uri(caller, ticket_id, request.uri)
    return await _ticket_response(reg, ticket_id)


@app.post("/v1/tickets/{ticket_id}/transfer", response_model=TicketResponse)
async def transfer_ticket(
    ticket_id: int,
    request: TransferRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> TicketResponse:
    await reg.transfer(caller, ticket_id, request.from_owner, request.to)
    return await _ticket_response(reg, ticket_id)


@app.post("/v1/tickets/{ticket_id}/approve", response_model=TicketResponse)
async def approve_ticket(
    ticket_id: int,
    request: ApproveRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> TicketResponse:
    await reg.approve(caller, request.approved, ticket_id)
    return await _ticket_response(reg, ticket_id)


# Owners

@app.get("/v1/owners/{owner}/tickets")
async def owner_tickets(owner: str, reg: TicketRegistry = Depends(get_registry)):
    return {
        "owner": owner,
        "balance": await reg.balance_of(owner),
        "tickets": await reg.tickets_of(owner),
    }


@app.get("/v1/owners/{owner}/operators/{operator}")
async def get_operator_approval(owner: str, operator: str, reg: TicketRegistry = Depends(get_registry)):
    return {
        "owner": owner,
        "operator": operator,
        "approved": await reg.is_approved_for_all(owner, operator),
    }


@app.put("/v1/operators/{operator}")
async def set_operator_approval(
    operator: str,
    request: OperatorApprovalRequest,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
):
    """Allow or forbid an operator to manage all of the caller's tickets."""
    await reg.set_approval_for_all(caller, operator, request.approved)
    return {"owner": caller, "operator": operator, "approved": request.approved}


# Roles

@app.get("/v1/roles/{role}", response_model=List[str])
async def role_members(role: Role, reg: TicketRegistry = Depends(get_registry)) -> List[str]:
    return await reg.role_members(role)


@app.get("/v1/roles/{role}/{principal}", response_model=RoleResponse)
async def has_role(role: Role, principal: str, reg: TicketRegistry = Depends(get_registry)) -> RoleResponse:
    return RoleResponse(role=role, principal=principal, granted=await reg.has_role(role, principal))


@app.put("/v1/roles/{role}/{principal}", response_model=RoleResponse)
async def grant_role(
    role: Role,
    principal: str,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> RoleResponse:
    await reg.grant_role(caller, role, principal)
    return RoleResponse(role=role, principal=principal, granted=True)


@app.delete("/v1/roles/{role}/{principal}", response_model=RoleResponse)
async def revoke_role(
    role: Role,
    principal: str,
    caller: str = Depends(get_principal),
    reg: TicketRegistry = Depends(get_registry),
) -> RoleResponse:
    if principal == caller:
        await reg.renounce_role(caller, role)
    else:
        await reg.revoke_role(caller, role, principal)
    return RoleResponse(role=role, principal=principal, granted=False)


# Notifications

@app.get("/v1/notifications", response_model=List[AnyNotification])
async def list_notifications(
    after: int = Query(0, ge=0, description="Return records with a sequence number above this"),
    kind: Optional[List[str]] = Query(None, description="Restrict to these record kinds"),
    reg: TicketRegistry = Depends(get_registry),
):
    return reg.notifications.history(after=after, kinds=kind)


# Error handling

@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError):
    """Translate registry failures into the error envelope."""
    status_code = ERROR_STATUS.get(exc.error_code, 400)
    logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code.value}: {exc.message}")
    error_response = ErrorResponse(
        error={
            "message": exc.message,
            "type": "registry_error",
            "code": exc.error_code.value,
        }
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump())


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with the same error envelope."""
    error_response = ErrorResponse(
        error={
            "message": str(exc.detail),
            "type": "invalid_request_error",
            "code": str(exc.status_code),
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(),
        headers=getattr(exc, "headers", None),
    )
