"""
Accounts app tests — registration, role-aware login, profile and roster.

Covers:
  1. Registration success (user created, password hashed, Base User role)
  2. Registration duplicate field rejected
  3. Login with username, e-mail or phone
  4. Wrong password / inactive user fail
  5. Worker login requires a worker profile
  6. "Me" retrieve and update
  7. Worker roster listing and permission-gated registration
"""

from __future__ import annotations

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import Department, User, Worker

REGISTER_URL = "/api/accounts/auth/register/"
LOGIN_URL = "/api/accounts/auth/login/"
ME_URL = "/api/accounts/me/"
WORKERS_URL = "/api/accounts/workers/"


def _register_payload(**overrides) -> dict:
    """Return a valid registration payload, with optional overrides."""
    data = {
        "username": "newuser",
        "password": "Str0ng!Pass123",
        "password_confirm": "Str0ng!Pass123",
        "email": "newuser@example.com",
        "phone_number": "09121234567",
        "first_name": "New",
        "last_name": "User",
    }
    data.update(overrides)
    return data


def _login(api_client: APIClient, identifier: str, password: str = "TestPass123!", **extra):
    return api_client.post(
        LOGIN_URL,
        {"identifier": identifier, "password": password, **extra},
        format="json",
    )


@pytest.mark.django_db
class TestRegistration:

    def test_register_creates_user_with_base_role(self, api_client: APIClient, rbac):
        resp = api_client.post(REGISTER_URL, _register_payload(), format="json")
        assert resp.status_code == status.HTTP_201_CREATED, resp.data

        user = User.objects.get(username="newuser")
        assert user.check_password("Str0ng!Pass123")
        assert user.role.name == "Base User"
        assert user.phone_number == "09121234567"
        assert "reports.add_report" in resp.data["permissions"]
        assert resp.data["worker"] is None

    def test_duplicate_username_rejected(self, api_client: APIClient, create_user, rbac):
        create_user(username="existinguser")
        resp = api_client.post(
            REGISTER_URL, _register_payload(username="existinguser"), format="json",
        )
        assert resp.status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_409_CONFLICT)

    def test_password_mismatch_rejected(self, api_client: APIClient, rbac):
        resp = api_client.post(
            REGISTER_URL,
            _register_payload(password_confirm="Different!Pass1"),
            format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "password_confirm" in resp.data


@pytest.mark.django_db
class TestLogin:

    @pytest.mark.parametrize("identifier", ["loginuser", "login@test.local", "09130000099"])
    def test_login_with_any_identifier(self, api_client: APIClient, create_user, identifier):
        create_user(
            username="loginuser",
            email="login@test.local",
            phone_number="09130000099",
        )
        resp = _login(api_client, identifier)
        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert {"access", "refresh", "user"} <= set(resp.data)

    def test_wrong_password_fails(self, api_client: APIClient, create_user):
        create_user(username="wrongpw")
        resp = _login(api_client, "wrongpw", password="WrongPass1!")
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED

    def test_inactive_user_cannot_login(self, api_client: APIClient, create_user):
        create_user(username="inactive", is_active=False)
        resp = _login(api_client, "inactive")
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED

    def test_worker_login_for_worker(self, api_client: APIClient, create_worker):
        worker = create_worker(department=Department.SYSTEMS, username="tech")
        resp = _login(api_client, "tech", role="worker")
        assert resp.status_code == status.HTTP_200_OK, resp.data
        assert resp.data["user"]["worker"]["id"] == worker.pk
        assert resp.data["user"]["worker"]["department"] == Department.SYSTEMS

    def test_worker_login_for_non_worker_is_forbidden(self, api_client: APIClient, create_user):
        create_user(username="reporter")
        resp = _login(api_client, "reporter", role="worker")
        assert resp.status_code == status.HTTP_403_FORBIDDEN
        assert resp.data["code"] == "PermissionDenied"


@pytest.mark.django_db
class TestMe:

    def test_me_requires_authentication(self, api_client: APIClient):
        assert api_client.get(ME_URL).status_code == status.HTTP_401_UNAUTHORIZED

    def test_me_returns_profile(self, api_client: APIClient, auth_header, rbac):
        header = auth_header(username="alice", role=rbac["Authority"])
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        resp = api_client.get(ME_URL)
        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["username"] == "alice"
        assert resp.data["role_detail"]["name"] == "Authority"
        assert "reports.can_reassign_report" in resp.data["permissions"]

    def test_me_update_changes_allowed_fields_only(self, api_client: APIClient, auth_header):
        header = auth_header(username="bob")
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        resp = api_client.patch(
            ME_URL, {"first_name": "Robert", "username": "hacker"}, format="json",
        )
        assert resp.status_code == status.HTTP_200_OK, resp.data
        user = User.objects.get(username="bob")
        assert user.first_name == "Robert"


@pytest.mark.django_db
class TestWorkerRoster:

    def _worker_payload(self, **overrides) -> dict:
        data = _register_payload(
            username="newtech",
            email="newtech@example.com",
            phone_number="09125550000",
        )
        data.update({"department": Department.MAINTENANCE, "rank": "Technician"})
        data.update(overrides)
        return data

    def test_roster_can_be_filtered_by_department(
        self, api_client: APIClient, auth_header, create_worker,
    ):
        create_worker(department=Department.MAINTENANCE)
        systems = create_worker(department=Department.SYSTEMS)
        api_client.credentials(HTTP_AUTHORIZATION=auth_header()["Authorization"])

        resp = api_client.get(WORKERS_URL, {"department": Department.SYSTEMS})
        assert resp.status_code == status.HTTP_200_OK
        assert [row["id"] for row in resp.data] == [systems.pk]

    def test_manager_registers_worker(self, api_client: APIClient, auth_header, rbac):
        header = auth_header(username="director", role=rbac["Max Authority"])
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        resp = api_client.post(WORKERS_URL, self._worker_payload(), format="json")
        assert resp.status_code == status.HTTP_201_CREATED, resp.data

        worker = Worker.objects.select_related("user").get(user__username="newtech")
        assert worker.department == Department.MAINTENANCE
        assert worker.user.role.name == "Worker"
        assert worker.user.check_password("Str0ng!Pass123")

    def test_reporter_cannot_register_worker(self, api_client: APIClient, auth_header, rbac):
        header = auth_header(role=rbac["Base User"])
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        resp = api_client.post(WORKERS_URL, self._worker_payload(), format="json")
        assert resp.status_code == status.HTTP_403_FORBIDDEN
        assert not Worker.objects.exists()

    def test_unknown_department_rejected(self, api_client: APIClient, auth_header, rbac):
        header = auth_header(role=rbac["Max Authority"])
        api_client.credentials(HTTP_AUTHORIZATION=header["Authorization"])

        resp = api_client.post(
            WORKERS_URL, self._worker_payload(department="cleaning"), format="json",
        )
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
