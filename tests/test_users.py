"""Tests for roles, permissions, flocks and user management."""
from datetime import date

import pytest

from database import AuditLog, Flock, User
from modules.flock import create_flock, set_flock_status
from modules.users import upsert_user, list_users_text
from utils import ROLE_PERMISSIONS, get_main_menu_keyboard, has_permission


def menu_callbacks(role):
    return [button.callback_data for row in get_main_menu_keyboard(role).inline_keyboard for button in row]


class TestPermissions:

    def test_every_role_has_permissions(self):
        assert set(ROLE_PERMISSIONS) == {"ADMIN", "ACCOUNTANT", "MANAGER", "KEEPER", "INVESTOR"}

    @pytest.mark.parametrize("role, permission, allowed", [
        ("ADMIN", "users", True),
        ("MANAGER", "approvals", True),
        ("MANAGER", "users", False),
        ("KEEPER", "new_report", True),
        ("KEEPER", "recalculate", False),
        ("INVESTOR", "fcr_insights", True),
        ("ACCOUNTANT", "approvals", False),
        ("UNKNOWN", "fcr_insights", True),
        ("UNKNOWN", "new_report", False),
    ])
    def test_has_permission(self, role, permission, allowed):
        assert has_permission(role, permission) is allowed

    def test_keeper_menu(self):
        assert menu_callbacks("KEEPER") == ["menu_new_report"]

    def test_manager_menu(self):
        assert menu_callbacks("MANAGER") == ["menu_pending", "menu_fcr", "menu_flocks"]


class TestUpsertUser:

    def test_create_and_update(self, db_session):
        upsert_user(db_session, 1001, "keeper", "Juma", admin_id=1)
        user = upsert_user(db_session, 1001, "MANAGER", "Juma K.", admin_id=1)

        assert db_session.query(User).count() == 1
        assert user.role == "MANAGER"
        assert user.name == "Juma K."
        assert db_session.query(AuditLog).filter_by(action="user_role").count() == 2

    def test_reactivates_user(self, db_session):
        user = upsert_user(db_session, 1002, "INVESTOR", "Wanjiru", admin_id=1)
        user.is_active = False
        db_session.commit()

        user = upsert_user(db_session, 1002, "INVESTOR", "Wanjiru", admin_id=1)
        assert user.is_active is True

    def test_unknown_role(self, db_session):
        with pytest.raises(ValueError):
            upsert_user(db_session, 1003, "VET", "Dr. Otieno", admin_id=1)
        assert db_session.query(User).count() == 0

    def test_list_users(self, db_session):
        assert "No users" in list_users_text(db_session)
        upsert_user(db_session, 1004, "ACCOUNTANT", "Njeri", admin_id=1)
        assert "Njeri" in list_users_text(db_session)


class TestFlockLifecycle:

    def test_create_flock(self, db_session):
        flock = create_flock(db_session, "Batch 9", date(2026, 4, 1), 800, user_id=1)

        assert flock.status == "ACTIVE"
        assert flock.total_birds == 800
        assert flock.current_count == 800

    def test_complete_flock(self, db_session):
        flock = create_flock(db_session, "Batch 9", date(2026, 4, 1), 800, user_id=1)

        set_flock_status(db_session, flock.id, "COMPLETED", user_id=1)

        assert db_session.query(Flock).filter_by(status="ACTIVE").count() == 0
        assert set_flock_status(db_session, 999, "COMPLETED", user_id=1) is None
        with pytest.raises(ValueError):
            set_flock_status(db_session, flock.id, "SOLD", user_id=1)
