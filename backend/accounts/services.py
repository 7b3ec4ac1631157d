"""
Accounts Service Layer.

This module is the **single source of truth** for all business logic
within the ``accounts`` app.  Views must remain *thin*: they validate
input through serializers, call a service function / method, and
return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``UserRegistrationService``  — handles new reporting-user creation.
- ``AuthenticationService``    — multi-field, role-aware login + JWT issuance.
- ``WorkerRosterService``      — worker registration and roster queries.
- ``CurrentUserService``       — "Me" endpoint helpers.
"""

from __future__ import annotations

import logging
from typing import Any

from django.contrib.auth import authenticate as django_authenticate
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from rest_framework_simplejwt.tokens import RefreshToken

from core.domain.access import require_permission
from core.domain.exceptions import Conflict, NotFound, PermissionDenied, ValidationError
from core.permissions_constants import AccountsPerms

from .models import Department, Role, Worker

logger = logging.getLogger(__name__)

User = get_user_model()

BASE_USER_ROLE = "Base User"
WORKER_ROLE = "Worker"

LOGIN_ROLE_USER = "user"
LOGIN_ROLE_WORKER = "worker"
LOGIN_ROLES = (LOGIN_ROLE_USER, LOGIN_ROLE_WORKER)


def _get_or_create_role(name: str, hierarchy_level: int, description: str) -> Role:
    try:
        return Role.objects.get(name__iexact=name)
    except Role.DoesNotExist:
        return Role.objects.create(
            name=name,
            hierarchy_level=hierarchy_level,
            description=description,
        )


def _create_account(validated_data: dict[str, Any], role: Role) -> User:
    """Create a user with a hashed password, raising ``Conflict`` on duplicates."""
    validated_data.pop("password_confirm", None)
    password = validated_data.pop("password")

    conflicts = []
    if User.objects.filter(username=validated_data.get("username")).exists():
        conflicts.append("username")
    if User.objects.filter(email=validated_data.get("email")).exists():
        conflicts.append("email")
    phone = validated_data.get("phone_number")
    if phone and User.objects.filter(phone_number=phone).exists():
        conflicts.append("phone_number")
    if conflicts:
        raise Conflict(
            f"The following field(s) already exist: {', '.join(conflicts)}."
        )

    if not phone:
        validated_data["phone_number"] = None

    try:
        with transaction.atomic():
            user = User.objects.create_user(password=password, **validated_data)
            user.role = role
            user.save(update_fields=["role"])
    except IntegrityError:
        raise Conflict(
            "A user with one of the provided unique fields already exists."
        )
    return user


# ═══════════════════════════════════════════════════════════════════
#  Registration Service
# ═══════════════════════════════════════════════════════════════════


class UserRegistrationService:
    """Self-service registration of reporting users."""

    @staticmethod
    def register_user(validated_data: dict[str, Any]) -> User:
        """
        Create a new user and assign the default "Base User" role.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``RegisterRequestSerializer`` containing
            ``username``, ``password``, ``email``, ``first_name``,
            ``last_name`` and optionally ``phone_number``.

        Returns
        -------
        User
            The newly created (and saved) ``User`` instance.

        Raises
        ------
        core.domain.exceptions.Conflict
            If a unique field (username, email, phone_number) is taken.
        """
        base_role = _get_or_create_role(
            BASE_USER_ROLE, 1, "Default role for newly registered users.",
        )
        user = _create_account(validated_data, base_role)
        logger.info("Registered user #%d (%s)", user.pk, user.username)
        return user


# ═══════════════════════════════════════════════════════════════════
#  Authentication Service
# ═══════════════════════════════════════════════════════════════════


class AuthenticationService:
    """
    ``authenticate(identifier, secret, role) -> session``.

    The identifier may be a username, e-mail or phone number.  ``role``
    selects the login kind: ``"user"`` for anyone filing reports,
    ``"worker"`` for roster staff (requires a ``Worker`` profile).
    """

    @staticmethod
    def authenticate(
        identifier: str,
        password: str,
        role: str | None = None,
    ) -> User | None:
        """
        Validate credentials and return the user if successful.

        Returns ``None`` when the credentials are invalid or the account
        is inactive.

        Raises
        ------
        ValidationError
            Unknown ``role`` value.
        PermissionDenied
            ``role="worker"`` for an account with no worker profile.
        """
        if role is not None and role not in LOGIN_ROLES:
            raise ValidationError(
                f"Login role must be one of: {', '.join(LOGIN_ROLES)}.",
                field="role",
            )

        user = django_authenticate(identifier=identifier, password=password)
        if user is None:
            logger.info("Failed login attempt for identifier=%s", identifier)
            return None

        if role == LOGIN_ROLE_WORKER and not user.is_worker:
            raise PermissionDenied("This account is not registered as a worker.")
        return user

    @staticmethod
    def generate_tokens(user: User, login_role: str | None = None) -> dict[str, str]:
        """
        Issue a JWT access/refresh token pair for the given user.

        The RBAC claims (role, hierarchy level, permissions) and the login
        kind are embedded so the frontend can render without an extra call.
        """
        refresh = RefreshToken.for_user(user)
        refresh["role"] = user.role.name if user.role else None
        refresh["hierarchy_level"] = user.hierarchy_level
        refresh["permissions_list"] = user.permissions_list
        refresh["login_role"] = login_role or (
            LOGIN_ROLE_WORKER if user.is_worker else LOGIN_ROLE_USER
        )
        if user.is_worker:
            refresh["worker_id"] = user.worker_profile.pk
        return {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }


# ═══════════════════════════════════════════════════════════════════
#  Worker Roster Service
# ═══════════════════════════════════════════════════════════════════


class WorkerRosterService:
    """
    Registration and listing of department workers.

    The roster is read by the assignment selector (by department) and by
    authorities choosing a worker to reassign a report to.
    """

    @staticmethod
    def register_worker(validated_data: dict[str, Any], performed_by: User) -> Worker:
        """
        Create a login account plus its ``Worker`` profile.

        Parameters
        ----------
        validated_data : dict
            Account fields plus ``department``, ``rank``, ``contact_phone``.
        performed_by : User
            Must hold ``accounts.can_manage_workers``.

        Raises
        ------
        PermissionDenied, ValidationError, Conflict
        """
        require_permission(
            performed_by,
            f"accounts.{AccountsPerms.CAN_MANAGE_WORKERS}",
            message="Only roster managers can register workers.",
        )

        data = dict(validated_data)
        department = data.pop("department")
        if department not in Department.values:
            raise ValidationError(
                f"Department must be one of: {', '.join(Department.values)}.",
                field="department",
            )
        rank = data.pop("rank", "")
        contact_phone = data.pop("contact_phone", "")

        worker_role = _get_or_create_role(
            WORKER_ROLE, 3, "Department staff who resolve incident reports.",
        )
        with transaction.atomic():
            user = _create_account(data, worker_role)
            worker = Worker.objects.create(
                user=user,
                department=department,
                rank=rank,
                contact_phone=contact_phone or (user.phone_number or ""),
            )

        logger.info(
            "Worker #%d registered in %s by user #%d",
            worker.pk, department, performed_by.pk,
        )
        return worker

    @staticmethod
    def list_workers(
        *,
        department: str | None = None,
        rank: str | None = None,
        search: str | None = None,
    ) -> QuerySet[Worker]:
        """Return the roster filtered by department, rank and free text."""
        qs = Worker.objects.select_related("user").all()
        if department:
            qs = qs.filter(department=department)
        if rank:
            qs = qs.filter(rank__iexact=rank)
        if search:
            qs = qs.filter(
                Q(user__first_name__icontains=search)
                | Q(user__last_name__icontains=search)
                | Q(user__email__icontains=search)
                | Q(rank__icontains=search)
            )
        return qs

    @staticmethod
    def get_worker(worker_id: int) -> Worker:
        try:
            return Worker.objects.select_related("user").get(pk=worker_id)
        except Worker.DoesNotExist:
            raise NotFound(f"Worker with id {worker_id} not found.")


# ═══════════════════════════════════════════════════════════════════
#  Current User (Me) Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """Helpers for the "Me" endpoint."""

    @staticmethod
    def get_profile(user: User) -> User:
        """
        Return the user with role, permissions and worker profile
        pre-fetched for serialization.
        """
        return (
            User.objects.select_related("role", "worker_profile")
            .prefetch_related("role__permissions__content_type")
            .get(pk=user.pk)
        )

    @staticmethod
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Update the authenticated user's own profile fields.

        The user may NOT change their own ``role``, ``is_active`` or
        ``username`` via this endpoint.
        """
        for field, value in validated_data.items():
            setattr(user, field, value)
        user.save(update_fields=list(validated_data.keys()))
        return CurrentUserService.get_profile(user)
