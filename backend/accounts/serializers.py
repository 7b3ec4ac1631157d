"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here; all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

import re
from typing import Any

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Department, Role, Worker
from .services import LOGIN_ROLES

User = get_user_model()

PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")


def _validate_phone(value: str) -> str:
    if value and not PHONE_PATTERN.match(value):
        raise serializers.ValidationError(
            "Phone number must contain 7 to 15 digits, optionally prefixed by '+'."
        )
    return value


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RegisterRequestSerializer(serializers.ModelSerializer):
    """
    Validates new-user registration data.

    The ``password`` field is write-only and will be hashed by the
    service layer before persisting.
    """

    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    password_confirm = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="Must match 'password'.",
    )
    phone_number = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=15,
        validators=[_validate_phone],
    )

    class Meta:
        model = User
        fields = [
            "username",
            "password",
            "password_confirm",
            "email",
            "phone_number",
            "first_name",
            "last_name",
        ]
        extra_kwargs = {
            "email": {"required": True},
            "first_name": {"required": True},
            "last_name": {"required": True},
        }

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs["password"] != attrs["password_confirm"]:
            raise serializers.ValidationError(
                {"password_confirm": "Passwords do not match."}
            )
        attrs.pop("password_confirm")
        return attrs


class LoginRequestSerializer(serializers.Serializer):
    """
    Accepts multi-field login credentials.

    ``identifier`` may be a username, e-mail or phone number.  ``role``
    chooses between the reporter and worker login.
    """

    identifier = serializers.CharField(
        help_text="Username, Email, or Phone Number.",
    )
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="User account password.",
    )
    role = serializers.ChoiceField(
        choices=LOGIN_ROLES,
        required=False,
        help_text="'user' or 'worker'. Omit to detect automatically.",
    )


class RoleListSerializer(serializers.ModelSerializer):

    class Meta:
        model = Role
        fields = ["id", "name", "description", "hierarchy_level"]
        read_only_fields = ["id"]


# ═══════════════════════════════════════════════════════════════════
#  Worker Serializers
# ═══════════════════════════════════════════════════════════════════


class WorkerSerializer(serializers.ModelSerializer):
    """Roster entry with the linked account's display fields."""

    full_name = serializers.CharField(source="user.display_name", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)
    user_id = serializers.IntegerField(source="user.id", read_only=True)
    department_display = serializers.CharField(
        source="get_department_display", read_only=True,
    )

    class Meta:
        model = Worker
        fields = [
            "id",
            "user_id",
            "full_name",
            "email",
            "department",
            "department_display",
            "rank",
            "contact_phone",
        ]
        read_only_fields = fields


class WorkerRegisterSerializer(RegisterRequestSerializer):
    """Account fields plus the roster profile."""

    department = serializers.ChoiceField(choices=Department.choices)
    rank = serializers.CharField(max_length=100, required=False, allow_blank=True)
    contact_phone = serializers.CharField(
        max_length=15,
        required=False,
        allow_blank=True,
        validators=[_validate_phone],
    )

    class Meta(RegisterRequestSerializer.Meta):
        fields = RegisterRequestSerializer.Meta.fields + [
            "department",
            "rank",
            "contact_phone",
        ]


class WorkerFilterSerializer(serializers.Serializer):
    department = serializers.ChoiceField(choices=Department.choices, required=False)
    rank = serializers.CharField(required=False)
    search = serializers.CharField(required=False)


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in me, login and registration
    responses).  Includes the nested role object, a flat permissions
    list, and the worker profile when the user is on the roster.
    """

    role_detail = RoleListSerializer(source="role", read_only=True)
    permissions = serializers.ListField(
        child=serializers.CharField(),
        source="permissions_list",
        read_only=True,
        help_text="Flat list of 'app_label.codename' permission strings.",
    )
    worker = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "phone_number",
            "first_name",
            "last_name",
            "is_active",
            "date_joined",
            "role",
            "role_detail",
            "permissions",
            "worker",
        ]
        read_only_fields = fields

    def get_worker(self, obj: User) -> dict | None:
        if not obj.is_worker:
            return None
        return WorkerSerializer(obj.worker_profile).data


class TokenResponseSerializer(serializers.Serializer):
    """JWT token pair plus the logged-in user."""

    access = serializers.CharField(read_only=True)
    refresh = serializers.CharField(read_only=True)
    user = UserDetailSerializer(read_only=True)


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Allows the authenticated user to update limited profile fields.
    Sensitive fields (role, is_active, username) cannot be self-modified.
    """

    class Meta:
        model = User
        fields = [
            "email",
            "phone_number",
            "first_name",
            "last_name",
        ]

    def validate_email(self, value: str) -> str:
        if (
            self.instance
            and User.objects.exclude(pk=self.instance.pk)
            .filter(email=value)
            .exists()
        ):
            raise serializers.ValidationError(
                "This email is already in use by another account."
            )
        return value

    def validate_phone_number(self, value: str | None) -> str | None:
        if not value:
            return None
        _validate_phone(value)
        if (
            self.instance
            and User.objects.exclude(pk=self.instance.pk)
            .filter(phone_number=value)
            .exists()
        ):
            raise serializers.ValidationError(
                "This phone number is already in use by another account."
            )
        return value
