"""
Accounts app models.

Defines the dynamic Role system, a custom User model that extends
Django's ``AbstractUser``, and the ``Worker`` roster profile used to
route incident reports to department staff.
"""

from django.conf import settings
from django.contrib.auth.models import AbstractUser, Permission
from django.db import models

from core.permissions_constants import AccountsPerms


class Department(models.TextChoices):
    """Departments that can receive incident reports."""

    MAINTENANCE = "maintenance", "Maintenance"
    SYSTEMS = "systems", "Systems"


class Role(models.Model):
    """
    Dynamic, admin-manageable role.

    Roles can be created, modified, or deleted at runtime by the System
    Administrator without code changes.  ``hierarchy_level`` encodes
    the relative authority (Max Authority > Authority > Worker > Base User).

    Default roles seeded via ``setup_rbac``:
        System Admin, Max Authority, Authority, Worker, Base User.

    Custom workflow permissions are defined as constants in
    ``core.permissions_constants`` and registered in each model's
    ``Meta.permissions``.  ``setup_rbac`` links them to ``Role`` objects;
    it never creates permissions itself.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="Role Name",
    )
    description = models.TextField(
        blank=True,
        default="",
        verbose_name="Description",
    )
    hierarchy_level = models.PositiveSmallIntegerField(
        default=0,
        verbose_name="Hierarchy Level",
        help_text="Higher value = more authority (e.g. Max Authority=10, Base User=1).",
    )
    permissions = models.ManyToManyField(
        Permission,
        blank=True,
        verbose_name="Permissions",
        help_text="Specific permissions for this role.",
    )

    class Meta:
        verbose_name = "Role"
        verbose_name_plural = "Roles"
        ordering = ["-hierarchy_level"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model shared by reporters, workers and authorities.

    Login is supported via *any one* of username / email / phone_number
    together with the password.  Each user holds exactly **one** role at
    a time (FK to ``Role``).  New users register as "Base User".
    """

    phone_number = models.CharField(
        max_length=15,
        unique=True,
        null=True,
        blank=True,
        verbose_name="Phone Number",
        db_index=True,
    )
    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )

    # ── Single-role assignment (dynamic RBAC) ────────────────────────
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="users",
        verbose_name="Assigned Role",
    )

    REQUIRED_FIELDS = ["email", "first_name", "last_name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        permissions = [
            (AccountsPerms.CAN_MANAGE_USERS, "Admin-level user management"),
        ]

    def __str__(self):
        role_name = self.role.name if self.role else "No Role"
        return f"{self.username} ({self.get_full_name()}) - {role_name}"

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    @property
    def hierarchy_level(self) -> int:
        """Return the hierarchy_level of the user's role (0 if none)."""
        return self.role.hierarchy_level if self.role else 0

    @property
    def is_worker(self) -> bool:
        return hasattr(self, "worker_profile")

    # ── RBAC Permission Overrides ────────────────────────────────────

    def get_all_permissions(self, obj=None) -> set:
        """
        Return a set of permission strings ('app_label.codename') the user has.
        """
        if not self.is_active:
            return set()

        if self.is_superuser:
            if not hasattr(self, "_superuser_perm_cache"):
                perms = Permission.objects.select_related("content_type").all()
                self._superuser_perm_cache = {f"{p.content_type.app_label}.{p.codename}" for p in perms}
            return self._superuser_perm_cache

        if not self.role:
            return set()

        if not hasattr(self, "_perm_cache"):
            perms = self.role.permissions.select_related("content_type")
            self._perm_cache = {f"{p.content_type.app_label}.{p.codename}" for p in perms}

        return self._perm_cache

    def has_perm(self, perm: str, obj=None) -> bool:
        """
        Superusers always have all permissions; everyone else gets the
        permissions of their assigned role.
        """
        if self.is_active and self.is_superuser:
            return True

        return perm in self.get_all_permissions(obj)

    def has_perms(self, perm_list, obj=None) -> bool:
        return all(self.has_perm(perm, obj) for perm in perm_list)

    def has_module_perms(self, app_label: str) -> bool:
        if self.is_active and self.is_superuser:
            return True

        return any(perm.startswith(f"{app_label}.") for perm in self.get_all_permissions())

    @property
    def permissions_list(self) -> list[str]:
        """
        Flat list of permission strings for the user's role, passed to the
        frontend for dynamic UI rendering.
        """
        return sorted(self.get_all_permissions())


class Worker(models.Model):
    """
    Roster entry for a department staff member who can be assigned reports.

    The worker logs in through the linked ``User``; ``department`` is the
    only input the assignment selector uses.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="worker_profile",
        verbose_name="User Account",
    )
    department = models.CharField(
        max_length=20,
        choices=Department.choices,
        db_index=True,
        verbose_name="Department",
    )
    rank = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="Rank / Job Title",
    )
    contact_phone = models.CharField(
        max_length=15,
        blank=True,
        default="",
        verbose_name="Contact Phone",
    )

    class Meta:
        verbose_name = "Worker"
        verbose_name_plural = "Workers"
        ordering = ["department", "user__last_name"]
        permissions = [
            (AccountsPerms.CAN_MANAGE_WORKERS, "Can register and edit roster workers"),
        ]

    def __str__(self):
        return f"{self.user.display_name} [{self.get_department_display()}]"

    @property
    def contact(self) -> str:
        return self.contact_phone or self.user.email
