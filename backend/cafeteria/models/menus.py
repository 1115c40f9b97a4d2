from __future__ import annotations

from ..extensions import db
from ..domain.menus import RES_CANCELLED, Menu, Reservation
from ..money import from_cents
from ..time_utils import utcnow


class WeeklyMenu(db.Model):
    """
    Lunch menu for one day.

    current_reservations counts non-cancelled reservations and is kept in
    [0, max_reservations]; max_reservations NULL means unlimited.
    """
    __tablename__ = "weekly_menus"
    __table_args__ = (
        db.CheckConstraint("current_reservations >= 0", name="ck_weekly_menus_count_nonneg"),
        db.Index("ix_weekly_menus_date_active", "menu_date", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    menu_date = db.Column(db.Date, nullable=False)

    entry_description = db.Column(db.String(255), nullable=False)
    main_course_description = db.Column(db.String(255), nullable=False)
    drink_description = db.Column(db.String(255), nullable=False)
    dessert_description = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    max_reservations = db.Column(db.Integer, nullable=True)
    current_reservations = db.Column(db.Integer, nullable=False, default=0)
    reservation_deadline = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_record(self) -> Menu:
        return Menu(
            menu_id=str(self.id),
            menu_date=self.menu_date,
            entry_description=self.entry_description,
            main_course_description=self.main_course_description,
            drink_description=self.drink_description,
            dessert_description=self.dessert_description,
            description=self.description,
            price=from_cents(self.price_cents),
            max_reservations=self.max_reservations,
            current_reservations=self.current_reservations,
            reservation_deadline=self.reservation_deadline,
            is_active=self.is_active,
        )


class MenuReservation(db.Model):
    __tablename__ = "menu_reservations"
    __table_args__ = (
        # One live reservation per user and menu
        db.Index(
            "uq_menu_reservations_active",
            "menu_id",
            "user_id",
            unique=True,
            sqlite_where=db.text(f"status != '{RES_CANCELLED}'"),
            postgresql_where=db.text(f"status != '{RES_CANCELLED}'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey("weekly_menus.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)

    reserved_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    menu = db.relationship("WeeklyMenu", backref=db.backref("reservations", lazy=True))
    user = db.relationship("User", backref=db.backref("reservations", lazy=True))

    def to_record(self) -> Reservation:
        return Reservation(
            reservation_id=str(self.id),
            menu_id=str(self.menu_id),
            user_id=str(self.user_id),
            quantity=self.quantity,
            total_amount=from_cents(self.total_cents),
            status=self.status,
            notes=self.notes,
            cancellation_reason=self.cancellation_reason,
            reserved_at=self.reserved_at,
            confirmed_at=self.confirmed_at,
            delivered_at=self.delivered_at,
            cancelled_at=self.cancelled_at,
        )
