from __future__ import annotations

from datetime import timedelta

import pytest

from fakes import make_user
from src.school_management.school_management.core.enums import Role, UserStatus
from src.school_management.school_management.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


def test_register_creates_school_owner_without_school(world):
    user_id = world.auth_service.register(
        username="owner", email="Owner@Example.com", full_name="School Owner", password="longenough"
    )

    user = world.users.get_by_id(user_id)
    assert user.role == Role.ADMIN
    assert user.school_id is None
    assert user.email == "owner@example.com"
    assert user.password_hash != "longenough"
    assert "user_registered" in world.audit.actions()


def test_register_rejects_short_password_and_duplicates(world):
    with pytest.raises(ValidationError):
        world.auth_service.register(username="a", email="a@b.co", full_name="A", password="short")

    world.users.add(make_user(1, username="taken", email="taken@school.test"))
    with pytest.raises(ConflictError):
        world.auth_service.register(username="taken", email="new@school.test", full_name="X", password="longenough")
    with pytest.raises(ConflictError):
        world.auth_service.register(username="fresh", email="taken@school.test", full_name="X", password="longenough")


def test_login_by_username_or_email_creates_session(world, fixed_now):
    world.users.add(make_user(1, username="bursar", email="bursar@school.test", role=Role.BURSAR))

    by_name = world.auth_service.authenticate("bursar", "secret123", ip_address="10.0.0.1", now=fixed_now)
    by_email = world.auth_service.authenticate("BURSAR@school.test", "secret123", now=fixed_now)

    assert by_name.token != by_email.token
    assert by_name.expires_at == fixed_now + timedelta(days=30)
    assert by_name.user.role == Role.BURSAR
    assert world.users.get_by_id(1).last_login == fixed_now
    assert world.audit.actions().count("login") == 2


def test_login_failures_share_one_message(world, fixed_now):
    world.users.add(make_user(1, username="staff"))
    world.users.add(make_user(2, username="gone", status=UserStatus.INACTIVE))

    messages = set()
    for identifier, password in [("staff", "wrong"), ("nobody", "secret123"), ("gone", "secret123"), ("", "")]:
        with pytest.raises(AuthenticationError) as exc:
            world.auth_service.authenticate(identifier, password, now=fixed_now)
        messages.add(str(exc.value))
    assert len(messages) == 1
    assert world.sessions.sessions == {}


def test_session_validation_touches_and_expires(world, fixed_now):
    user = world.users.add(make_user(1))
    session = world.session_service.create_session(user, now=fixed_now)

    current = world.session_service.validate_session(session.token, now=fixed_now + timedelta(days=2))
    assert current.user_id == 1
    assert world.sessions.get_by_token(session.token).last_activity == fixed_now + timedelta(days=2)

    # idle for more than the inactivity window
    assert world.session_service.validate_session(session.token, now=fixed_now + timedelta(days=10)) is None
    assert world.sessions.get_by_token(session.token).is_active is False


def test_stay_logged_in_survives_inactivity_but_not_expiry(world, fixed_now):
    user = world.users.add(make_user(1))
    session = world.session_service.create_session(user, stay_logged_in=True, now=fixed_now)

    assert world.session_service.validate_session(session.token, now=fixed_now + timedelta(days=20)) is not None
    assert world.session_service.validate_session(session.token, now=fixed_now + timedelta(days=31)) is None


def test_session_of_deactivated_user_is_rejected(world, fixed_now):
    user = world.users.add(make_user(1))
    session = world.session_service.create_session(user, now=fixed_now)
    world.users.set_status(1, status=UserStatus.INACTIVE)

    assert world.auth_service.current_user(session.token, now=fixed_now) is None


def test_logout_invalidates_once(world, fixed_now):
    world.users.add(make_user(1))
    login = world.auth_service.authenticate("user1", "secret123", now=fixed_now)

    world.auth_service.logout(login.token, user_id=1, now=fixed_now)
    world.auth_service.logout(login.token, user_id=1, now=fixed_now)

    assert world.auth_service.current_user(login.token, now=fixed_now) is None
    assert world.audit.actions().count("logout") == 1


def test_purge_removes_expired_sessions(world, fixed_now):
    user = world.users.add(make_user(1))
    old = world.session_service.create_session(user, now=fixed_now - timedelta(days=40))
    fresh = world.session_service.create_session(user, now=fixed_now)

    assert world.session_service.purge_expired_sessions(now=fixed_now) == 1
    assert world.sessions.get_by_token(old.token) is None
    assert world.sessions.get_by_token(fresh.token) is not None


def test_admin_manages_staff_accounts(world):
    world.users.add(make_user(1, role=Role.ADMIN))

    staff_id = world.user_service.create_account(
        current_role=Role.ADMIN,
        school_id=1,
        full_name="Jane Bursar",
        username="jane",
        email="jane@school.test",
        password="password1",
        role=Role.BURSAR,
        created_by=1,
    )
    assert world.users.get_by_id(staff_id).school_id == 1

    world.user_service.set_active(current_role=Role.ADMIN, school_id=1, user_id=staff_id, is_active=False)
    assert world.users.get_by_id(staff_id).status == UserStatus.INACTIVE

    world.user_service.delete_user(current_role=Role.ADMIN, current_user_id=1, school_id=1, user_id=staff_id)
    assert world.users.get_by_id(staff_id) is None
    assert "user_deleted" in world.audit.actions()


def test_user_management_guards(world):
    world.users.add(make_user(1, role=Role.ADMIN))
    world.users.add(make_user(2, role=Role.ADMIN))
    world.users.add(make_user(3, school_id=2, role=Role.STAFF))

    with pytest.raises(AuthorizationError):
        world.user_service.create_account(
            current_role=Role.BURSAR,
            school_id=1,
            full_name="X",
            username="x",
            email="x@school.test",
            password="password1",
            role=Role.STAFF,
        )
    with pytest.raises(ValidationError):
        world.user_service.delete_user(current_role=Role.ADMIN, current_user_id=1, school_id=1, user_id=1)
    with pytest.raises(ValidationError):
        world.user_service.delete_user(current_role=Role.ADMIN, current_user_id=1, school_id=1, user_id=2)
    # another school's user is invisible
    with pytest.raises(NotFoundError):
        world.user_service.set_active(current_role=Role.ADMIN, school_id=1, user_id=3, is_active=False)
