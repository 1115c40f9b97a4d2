"""
Weekly menu reservations.

Verifies:
- A menu with one spot accepts exactly one reservation
- Cancelling releases the spot exactly once
- The live count always equals the non-cancelled reservations
- Customers may only cancel their own pending reservations
"""

import random
from datetime import timedelta

import pytest

from cafeteria.domain.menus import Menu, Reservation
from cafeteria.extensions import db
from cafeteria.models import MenuReservation, WeeklyMenu
from cafeteria.services import reservation_service
from cafeteria.services.reservation_service import ReservationError
from cafeteria.time_utils import utcnow
from cafeteria.validation import ConflictError, ValidationError

from conftest import auth_headers


def _count(menu_id):
    menu = db.session.get(WeeklyMenu, menu_id)
    db.session.refresh(menu)
    return menu.current_reservations


def _live(menu_id):
    return db.session.query(MenuReservation).filter(
        MenuReservation.menu_id == menu_id, MenuReservation.status != "cancelled"
    ).count()


class TestCapacityRules:

    def _menu(self, **overrides):
        base = dict(menu_id="1", menu_date=utcnow().date(), entry_description="a", main_course_description="b",
                    drink_description="c", dessert_description="d", price=12, max_reservations=2,
                    current_reservations=0, reservation_deadline=utcnow() + timedelta(hours=1))
        base.update(overrides)
        return Menu(**base)

    def test_open_menu(self):
        assert reservation_service.can_reserve(self._menu(), already_reserved=False)

    def test_full_menu(self):
        with pytest.raises(ConflictError):
            reservation_service.check_can_reserve(self._menu(current_reservations=2), False)

    def test_deadline_passed(self):
        menu = self._menu(reservation_deadline=utcnow() - timedelta(minutes=1))
        with pytest.raises(ReservationError):
            reservation_service.check_can_reserve(menu, False)

    def test_unlimited(self):
        menu = self._menu(max_reservations=None, current_reservations=500)
        assert reservation_service.has_capacity(menu)
        assert reservation_service.demand(menu)["demand_status"] == "unlimited"

    def test_counter_never_negative(self):
        assert reservation_service.decrement(0) == 0

    def test_quantity_capped(self):
        with pytest.raises(ValidationError):
            reservation_service.build_draft(self._menu(), "1", quantity=11)

    def test_customer_cannot_cancel_confirmed(self):
        reservation = Reservation("1", "1", "7", 1, 12, "confirmed")
        with pytest.raises(ReservationError):
            reservation_service.validate_transition(reservation, "cancelled", is_admin=False, actor_id="7")

    def test_customer_cannot_cancel_others(self):
        reservation = Reservation("1", "1", "7", 1, 12, "pending")
        with pytest.raises(ReservationError):
            reservation_service.validate_transition(reservation, "cancelled", is_admin=False, actor_id="8")


class TestReservationRoutes:

    def test_single_spot_first_come(self, client, menu, customer, cash_customer):
        resp_a = client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=auth_headers(customer))
        assert resp_a.status_code == 201, resp_a.get_json()
        assert resp_a.get_json()["reservation"]["total_amount"] == "12.00"
        assert resp_a.get_json()["menu"]["current_reservations"] == 1

        resp_b = client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=auth_headers(cash_customer))
        assert resp_b.status_code == 409
        assert _count(menu.id) == 1

    def test_cancel_releases_spot(self, client, menu, customer, cash_customer):
        headers_a = auth_headers(customer)
        reservation = client.post(f"/api/menus/{menu.id}/reservations", json={},
                                  headers=headers_a).get_json()["reservation"]

        resp = client.post(f"/api/reservations/{reservation['reservation_id']}/cancel", json={}, headers=headers_a)
        assert resp.status_code == 200
        assert _count(menu.id) == 0

        again = client.post(f"/api/reservations/{reservation['reservation_id']}/cancel", json={}, headers=headers_a)
        assert again.status_code == 400
        assert _count(menu.id) == 0

        resp_b = client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=auth_headers(cash_customer))
        assert resp_b.status_code == 201

    def test_duplicate_reservation(self, client, app, menu, customer):
        db.session.get(WeeklyMenu, menu.id).max_reservations = 5
        db.session.commit()
        headers = auth_headers(customer)
        assert client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=headers).status_code == 201
        assert client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=headers).status_code == 409
        assert _count(menu.id) == 1

    def test_can_reserve_flag(self, client, menu, customer, cash_customer):
        client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=auth_headers(customer))
        menus = client.get("/api/menus/active", headers=auth_headers(cash_customer)).get_json()["menus"]
        assert menus[0]["can_reserve"] is False
        assert menus[0]["spots_available"] == 0

    def test_admin_status_override(self, client, menu, admin_headers, customer):
        headers = auth_headers(customer)
        reservation = client.post(f"/api/menus/{menu.id}/reservations", json={},
                                  headers=headers).get_json()["reservation"]
        rid = reservation["reservation_id"]

        resp = client.patch(f"/api/reservations/{rid}/status", json={"status": "confirmed"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["reservation"]["confirmed_at"] is not None

        # customers may not cancel once confirmed
        assert client.post(f"/api/reservations/{rid}/cancel", json={}, headers=headers).status_code == 400

        resp = client.patch(f"/api/reservations/{rid}/status", json={"status": "cancelled"}, headers=admin_headers)
        assert resp.status_code == 200
        assert _count(menu.id) == 0

        resp = client.patch(f"/api/reservations/{rid}/status", json={"status": "pending"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_menu_stats(self, client, menu, admin_headers, customer):
        client.post(f"/api/menus/{menu.id}/reservations", json={"quantity": 2}, headers=auth_headers(customer))
        stats = client.get(f"/api/menus/{menu.id}/stats", headers=admin_headers).get_json()["stats"]
        assert stats["total_reservations"] == 1
        assert stats["total_quantity"] == 2
        assert stats["revenue"] == "24.00"
        assert stats["demand_status"] == "full"

    def test_random_sequence_keeps_count(self, client, menu, admin_headers, make_user):
        db.session.get(WeeklyMenu, menu.id).max_reservations = 3
        db.session.commit()
        users = [make_user(f"student{i}@estudiante.com") for i in range(6)]
        headers = {u.id: auth_headers(u) for u in users}
        rng = random.Random(7)
        reservations = {}

        for _ in range(30):
            user = rng.choice(users)
            if user.id in reservations and rng.random() < 0.5:
                rid = reservations.pop(user.id)
                resp = client.post(f"/api/reservations/{rid}/cancel", json={}, headers=headers[user.id])
                assert resp.status_code == 200
            else:
                resp = client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=headers[user.id])
                if resp.status_code == 201:
                    reservations[user.id] = resp.get_json()["reservation"]["reservation_id"]
                else:
                    assert resp.status_code == 409
            count = _count(menu.id)
            assert count == _live(menu.id)
            assert 0 <= count <= 3

    def test_create_menu_validation(self, client, admin_headers):
        resp = client.post("/api/menus/", json={"menu_date": "2026-10-20", "price": "12.00"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_menu_with_live_reservations(self, client, menu, admin_headers, customer):
        client.post(f"/api/menus/{menu.id}/reservations", json={}, headers=auth_headers(customer))
        assert client.delete(f"/api/menus/{menu.id}", headers=admin_headers).status_code == 409
