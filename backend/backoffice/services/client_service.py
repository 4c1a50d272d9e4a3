# Overview: Service-layer operations for clients; resolves the customer of an order and manages client records.

"""
Client Service

WHY: Checkout rarely knows a client id. Cashiers type a dni (national id)
and whatever contact details the customer gives, and the back office must
turn that into exactly one client per person per tenant.

DEDUP RULES (per tenant):
- dni is the primary key for dedup; a known dni refreshes contact fields
- an email maps to at most one client
- dni "00000000" is the shared walk-in "Generic Client"
"""

from ..extensions import db
from ..models import Client, GENERIC_CLIENT_DNI, GENERIC_CLIENT_NAME
from ..principal import Principal
from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from .order_schemas import ClientInfo


SEARCH_MIN_LENGTH = 3
SEARCH_MAX_RESULTS = 20

PATCHABLE_FIELDS = ("name", "email", "phone", "address", "ruc")


# =============================================================================
# ORDER CLIENT RESOLUTION
# =============================================================================

def get_or_create_generic_client(tenant_id: int, user_id: int) -> Client:
    client = db.session.query(Client).filter_by(
        tenant_id=tenant_id,
        dni=GENERIC_CLIENT_DNI,
    ).first()
    if client:
        return client

    client = Client(
        tenant_id=tenant_id,
        user_id=user_id,
        name=GENERIC_CLIENT_NAME,
        dni=GENERIC_CLIENT_DNI,
    )
    db.session.add(client)
    db.session.flush()
    return client


def resolve_client(
    client_id: int | None,
    client_info: ClientInfo | None,
    tenant_id: int,
    principal: Principal,
) -> int:
    """
    Resolve the client of an order and return its id.

    Exactly one of client_id / client_info must be given. Runs inside the
    caller's transaction: new or patched clients are flushed, not committed.

    Raises:
        BadRequestError: both or neither given, dni missing, or the email
            already belongs to a client with another dni (EMAIL_ALREADY_EXISTS)
        NotFoundError: client_id does not exist
        ForbiddenError: client_id belongs to another tenant
    """
    if client_id is not None and client_info is not None:
        raise BadRequestError("Provide either client_id or client_info, not both")
    if client_id is None and client_info is None:
        raise BadRequestError("client_id or client_info is required")

    if client_id is not None:
        client = db.session.query(Client).filter_by(id=client_id).first()
        if not client:
            raise NotFoundError("Client not found", details={"client_id": client_id})
        if client.tenant_id != tenant_id:
            raise ForbiddenError("Client belongs to another tenant", details={"client_id": client_id})
        return client.id

    if not client_info.dni:
        raise BadRequestError("client_info.dni is required", details={"field": "client_info.dni"})

    if client_info.dni == GENERIC_CLIENT_DNI:
        return get_or_create_generic_client(tenant_id, principal.user_id).id

    if client_info.email:
        by_email = db.session.query(Client).filter_by(
            tenant_id=tenant_id,
            email=client_info.email,
        ).first()
        if by_email and by_email.dni != client_info.dni:
            raise BadRequestError(
                "Email is already registered to another client",
                details={"email": client_info.email},
                code="EMAIL_ALREADY_EXISTS",
            )

    client = db.session.query(Client).filter_by(
        tenant_id=tenant_id,
        dni=client_info.dni,
    ).first()

    if client:
        # Last write wins; empty values never erase stored data
        for field in PATCHABLE_FIELDS:
            value = getattr(client_info, field)
            if value:
                setattr(client, field, value)
        db.session.flush()
        return client.id

    client = Client(
        tenant_id=tenant_id,
        user_id=principal.user_id,
        dni=client_info.dni,
        name=client_info.name,
        email=client_info.email,
        phone=client_info.phone,
        address=client_info.address,
        ruc=client_info.ruc,
    )
    db.session.add(client)
    db.session.flush()
    return client.id


# =============================================================================
# CLIENT RECORDS
# =============================================================================

def _ensure_unique(tenant_id: int, *, email: str | None, dni: str | None, exclude_id: int | None = None) -> None:
    if email:
        query = db.session.query(Client).filter_by(tenant_id=tenant_id, email=email)
        if exclude_id is not None:
            query = query.filter(Client.id != exclude_id)
        if query.first():
            raise ConflictError("Email is already registered to another client", code="EMAIL_ALREADY_EXISTS")
    if dni:
        query = db.session.query(Client).filter_by(tenant_id=tenant_id, dni=dni)
        if exclude_id is not None:
            query = query.filter(Client.id != exclude_id)
        if query.first():
            raise ConflictError("A client with this dni already exists", code="DNI_ALREADY_EXISTS")


def create_client(principal: Principal, info: ClientInfo) -> Client:
    if not info.name and not info.dni:
        raise BadRequestError("Client name or dni is required")
    if info.dni == GENERIC_CLIENT_DNI:
        raise BadRequestError("dni 00000000 is reserved for the generic client")

    _ensure_unique(principal.tenant_id, email=info.email, dni=info.dni)

    client = Client(
        tenant_id=principal.tenant_id,
        user_id=principal.user_id,
        name=info.name,
        email=info.email,
        phone=info.phone,
        address=info.address,
        dni=info.dni,
        ruc=info.ruc,
    )
    db.session.add(client)
    db.session.commit()
    return client


def get_client(client_id: int, principal: Principal) -> Client:
    client = db.session.query(Client).filter_by(
        id=client_id,
        tenant_id=principal.tenant_id,
    ).first()
    if not client:
        raise NotFoundError("Client not found", details={"client_id": client_id})
    return client


def update_client(client_id: int, principal: Principal, info: ClientInfo) -> Client:
    """Patch a client. Only non-empty fields are applied."""
    client = get_client(client_id, principal)
    if client.is_generic:
        raise BadRequestError("The generic client cannot be edited")
    if info.dni == GENERIC_CLIENT_DNI:
        raise BadRequestError("dni 00000000 is reserved for the generic client")

    _ensure_unique(principal.tenant_id, email=info.email, dni=info.dni, exclude_id=client.id)

    for field in PATCHABLE_FIELDS + ("dni",):
        value = getattr(info, field)
        if value:
            setattr(client, field, value)

    db.session.commit()
    return client


def search_clients(principal: Principal, query_text: str | None) -> list[Client]:
    """Substring search over name, email, phone, dni and ruc."""
    term = (query_text or "").strip()
    if len(term) < SEARCH_MIN_LENGTH:
        raise BadRequestError(
            f"Search term must be at least {SEARCH_MIN_LENGTH} characters",
            details={"min_length": SEARCH_MIN_LENGTH},
        )

    pattern = f"%{term}%"
    return db.session.query(Client).filter(
        Client.tenant_id == principal.tenant_id,
        db.or_(
            Client.name.ilike(pattern),
            Client.email.ilike(pattern),
            Client.phone.ilike(pattern),
            Client.dni.ilike(pattern),
            Client.ruc.ilike(pattern),
        ),
    ).order_by(Client.name.asc(), Client.id.asc()).limit(SEARCH_MAX_RESULTS).all()


def list_clients(principal: Principal, *, limit: int = 100, offset: int = 0) -> tuple[list[Client], int]:
    query = db.session.query(Client).filter(Client.tenant_id == principal.tenant_id)
    total = query.count()
    clients = query.order_by(Client.created_at.desc(), Client.id.desc()).offset(offset).limit(limit).all()
    return clients, total
