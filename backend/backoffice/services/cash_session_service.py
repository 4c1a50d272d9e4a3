"""
Cash Session Service

LIFECYCLE: OPEN → CLOSED (terminal). A store has at most one OPEN session.
Closing records both the expected cash (computed from movements) and the
amount the cashier declares after counting the drawer.
"""

from ..extensions import db
from ..models import CashSession, SESSION_STATUS_OPEN, SESSION_STATUS_CLOSED
from ..principal import Principal
from backoffice.time_utils import utcnow
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .errors import BadRequestError, ConflictError
from . import scope_service
from .cash_movement_service import compute_cash_totals


def get_open_session_for_store(store_id: int) -> CashSession | None:
    return db.session.query(CashSession).filter_by(
        store_id=store_id,
        status=SESSION_STATUS_OPEN,
    ).first()


def open_cash_session(store_id: int, opening_amount_cents: int, principal: Principal) -> CashSession:
    if not isinstance(opening_amount_cents, int) or isinstance(opening_amount_cents, bool) or opening_amount_cents < 0:
        raise BadRequestError("opening_amount_cents must be zero or a positive integer")

    def _op():
        begin_immediate()
        store = scope_service.require_store_access(store_id, principal)

        existing = lock_for_update(db.session.query(CashSession).filter_by(
            store_id=store.id,
            status=SESSION_STATUS_OPEN,
        )).first()
        if existing:
            raise ConflictError(
                f"Store already has an open cash session (session {existing.id})",
                details={"cash_session_id": existing.id},
            )

        cash_session = CashSession(
            store_id=store.id,
            user_id=principal.user_id,
            status=SESSION_STATUS_OPEN,
            opening_amount_cents=opening_amount_cents,
            opened_at=utcnow(),
        )
        db.session.add(cash_session)
        db.session.commit()
        return cash_session

    return run_with_retry(_op)


def close_cash_session(cash_session_id: int, declared_amount_cents: int, principal: Principal) -> CashSession:
    """
    Close a session. Orders and movements can no longer be posted to it.

    closing_amount_cents is the expected drawer balance at close time;
    declared_amount_cents is what was counted.
    """
    if not isinstance(declared_amount_cents, int) or isinstance(declared_amount_cents, bool) or declared_amount_cents < 0:
        raise BadRequestError("declared_amount_cents must be zero or a positive integer")

    def _op():
        begin_immediate()
        cash_session = scope_service.require_cash_session_access(cash_session_id, principal, lock=True)
        if not cash_session.is_open:
            raise ConflictError("Cash session is already closed", details={"cash_session_id": cash_session.id})

        totals = compute_cash_totals(cash_session)

        cash_session.status = SESSION_STATUS_CLOSED
        cash_session.closing_amount_cents = totals["balance_cents"]
        cash_session.declared_amount_cents = declared_amount_cents
        cash_session.closed_at = utcnow()
        cash_session.closed_by_id = principal.user_id

        db.session.commit()
        return cash_session

    return run_with_retry(_op)
