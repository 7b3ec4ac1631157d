"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``rbac`` fixture seeding the default roles via ``setup_rbac``.
  - ``create_user`` factory fixture for creating test users.
  - ``create_worker`` factory fixture for roster workers.
  - ``auth_header`` fixture for authenticated requests (JWT).
"""

from __future__ import annotations

from io import StringIO

import pytest
from django.core.management import call_command
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def rbac(db):
    """
    Seed the default roles and return them keyed by name.

    Usage::

        def test_something(rbac, create_user):
            authority = create_user(role=rbac["Authority"])
    """
    from accounts.models import Role

    call_command("setup_rbac", stdout=StringIO())
    return {role.name: role for role in Role.objects.all()}


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            user = create_user(username="alice")
            # or with more fields:
            user = create_user(
                username="bob",
                password="Str0ng!Pass",
                email="bob@example.com",
                phone_number="09121234567",
            )
    """
    from accounts.models import User

    _counter = 0

    def _factory(
        *,
        username: str | None = None,
        password: str = "TestPass123!",
        email: str | None = None,
        phone_number: str | None = None,
        role=None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if username is None:
            username = f"testuser{_counter}"
        if email is None:
            email = f"{username}@test.local"

        user = User.objects.create_user(
            username=username,
            password=password,
            email=email,
            phone_number=phone_number,
            is_active=is_active,
            **kwargs,
        )
        if role is not None:
            user.role = role
            user.save(update_fields=["role"])
        return user

    return _factory


@pytest.fixture()
def create_worker(create_user, rbac):
    """
    Factory fixture that creates a roster ``Worker`` (with its account).

    Usage::

        def test_roster(create_worker):
            worker = create_worker(department="systems")
    """
    from accounts.models import Department, Worker

    def _factory(*, department: str = Department.MAINTENANCE, **user_kwargs) -> Worker:
        user_kwargs.setdefault("role", rbac["Worker"])
        user = create_user(**user_kwargs)
        return Worker.objects.create(user=user, department=department)

    return _factory


@pytest.fixture()
def auth_header(create_user, api_client):
    """
    Returns a helper function that creates a user and returns an
    ``Authorization`` header dict with a valid JWT access token.

    Usage::

        def test_protected(auth_header, api_client):
            header = auth_header(username="alice")
            api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])
            resp = api_client.get("/api/core/dashboard/")
            assert resp.status_code != 401

    The returned dict looks like::

        {"Authorization": "Bearer eyJ..."}
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(
        *,
        username: str | None = None,
        role=None,
        **user_kwargs,
    ) -> dict[str, str]:
        user = create_user(username=username, role=role, **user_kwargs)
        token = AccessToken.for_user(user)
        return {"Authorization": f"Bearer {token}"}

    return _make
