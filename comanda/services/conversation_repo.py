from __future__ import annotations

from sqlalchemy.orm import Session

from comanda.core.errors import InvariantViolation
from comanda.fsm.effects import AdminSession, CartLine, CustomerSession
from comanda.fsm.states import AdminStep, CustomerStep
from comanda.models.admin_state import AdminConversationState
from comanda.models.customer_state import CustomerConversationState


def _admin_step(raw: str) -> AdminStep:
    try:
        return AdminStep(raw)
    except ValueError as exc:
        raise InvariantViolation(f"unknown persisted admin step: {raw!r}") from exc


def _customer_step(raw: str) -> CustomerStep:
    try:
        return CustomerStep(raw)
    except ValueError as exc:
        raise InvariantViolation(f"unknown persisted customer step: {raw!r}") from exc


class AdminStateRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _row(self, phone: str) -> AdminConversationState | None:
        return self.db.query(AdminConversationState).filter(AdminConversationState.phone == phone).first()

    def load(self, phone: str) -> AdminSession | None:
        row = self._row(phone)
        if row is None:
            return None
        return AdminSession(
            phone=row.phone,
            business_id=row.business_id,
            step=_admin_step(row.current_step),
            draft=row.draft or None,
        )

    def save(self, session: AdminSession) -> None:
        row = self._row(session.phone)
        if row is None:
            row = AdminConversationState(phone=session.phone, business_id=session.business_id)
            self.db.add(row)
        elif row.business_id != session.business_id:
            raise InvariantViolation("admin state belongs to another business")
        row.current_step = AdminStep(session.step).value
        row.draft = session.draft
        self.db.flush()

    def delete(self, phone: str) -> None:
        self.db.query(AdminConversationState).filter(AdminConversationState.phone == phone).delete()


class CustomerStateRepository:
    """Toda lectura/escritura va por (business_id, phone); nunca solo por teléfono."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _row(self, business_id: int, phone: str) -> CustomerConversationState | None:
        row = (
            self.db.query(CustomerConversationState)
            .filter(
                CustomerConversationState.business_id == business_id,
                CustomerConversationState.phone == phone,
            )
            .first()
        )
        if row is not None and (row.business_id != business_id or row.phone != phone):
            raise InvariantViolation("customer state key mismatch")
        return row

    def load(self, business_id: int, phone: str) -> CustomerSession | None:
        row = self._row(business_id, phone)
        if row is None:
            return None
        cart = [
            CartLine(
                product_id=int(line["product_id"]),
                name=str(line["name"]),
                price=int(line["price"]),
                qty=int(line["qty"]),
            )
            for line in (row.cart or [])
        ]
        return CustomerSession(
            business_id=row.business_id,
            phone=row.phone,
            step=_customer_step(row.current_step),
            cart=cart,
            selected_zone_id=row.selected_zone_id,
            delivery_method=row.delivery_method,
            delivery_address=row.delivery_address,
            checkout=dict(row.checkout) if row.checkout else None,
        )

    def save(self, session: CustomerSession) -> None:
        row = self._row(session.business_id, session.phone)
        if row is None:
            row = CustomerConversationState(business_id=session.business_id, phone=session.phone)
            self.db.add(row)
        row.current_step = CustomerStep(session.step).value
        row.cart = [
            {"product_id": line.product_id, "name": line.name, "price": line.price, "qty": line.qty}
            for line in session.cart
        ]
        row.selected_zone_id = session.selected_zone_id
        row.delivery_method = session.delivery_method
        row.delivery_address = session.delivery_address
        row.checkout = session.checkout
        self.db.flush()

    def delete(self, business_id: int, phone: str) -> None:
        (
            self.db.query(CustomerConversationState)
            .filter(
                CustomerConversationState.business_id == business_id,
                CustomerConversationState.phone == phone,
            )
            .delete()
        )
