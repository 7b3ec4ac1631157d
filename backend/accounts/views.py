"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``RegisterView``   — POST /auth/register/
- ``LoginView``      — POST /auth/login/
- ``MeView``         — GET / PATCH /me/
- ``WorkerViewSet``  — /workers/  (list, retrieve, create)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    LoginRequestSerializer,
    MeUpdateSerializer,
    RegisterRequestSerializer,
    TokenResponseSerializer,
    UserDetailSerializer,
    WorkerFilterSerializer,
    WorkerRegisterSerializer,
    WorkerSerializer,
)
from .services import (
    AuthenticationService,
    CurrentUserService,
    UserRegistrationService,
    WorkerRosterService,
)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class RegisterView(generics.CreateAPIView):
    """
    POST /api/accounts/auth/register/

    Public endpoint.  Creates a new reporting user with the default
    "Base User" role.
    """

    permission_classes = [AllowAny]
    serializer_class = RegisterRequestSerializer

    @extend_schema(
        summary="Register a reporting user",
        request=RegisterRequestSerializer,
        responses={
            201: OpenApiResponse(response=UserDetailSerializer, description="User created."),
            400: OpenApiResponse(description="Validation error."),
            409: OpenApiResponse(description="Duplicate username, email or phone."),
        },
        tags=["Accounts"],
    )
    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserRegistrationService.register_user(serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates via username, e-mail or phone plus
    password.  ``role`` selects the reporter or worker login.

    Flow:
        1. Validate input via ``LoginRequestSerializer``.
        2. Delegate to ``AuthenticationService.authenticate()``.
        3. If authentication fails, return 401.
        4. Generate JWT tokens via ``AuthenticationService.generate_tokens()``.
        5. Return tokens + user info.
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(
        summary="Log in and obtain a JWT pair",
        request=LoginRequestSerializer,
        responses={
            200: OpenApiResponse(response=TokenResponseSerializer, description="Logged in."),
            401: OpenApiResponse(description="Invalid credentials."),
            403: OpenApiResponse(description="Worker login for a non-worker account."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = LoginRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = data.get("role")
        user = AuthenticationService.authenticate(
            identifier=data["identifier"],
            password=data["password"],
            role=role,
        )
        if user is None:
            return Response(
                {"detail": "Invalid credentials."},
                status=status.HTTP_401_UNAUTHORIZED,
            )

        payload = AuthenticationService.generate_tokens(user, login_role=role)
        payload["user"] = UserDetailSerializer(user).data
        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET  /api/accounts/me/  → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own profile fields.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user profile",
        responses={200: UserDetailSerializer},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data)

    @extend_schema(
        summary="Update own profile",
        request=MeUpdateSerializer,
        responses={200: UserDetailSerializer},
        tags=["Accounts"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user, data=request.data, partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data)


# ═══════════════════════════════════════════════════════════════════
#  Worker Roster ViewSet
# ═══════════════════════════════════════════════════════════════════


class WorkerViewSet(viewsets.ViewSet):
    """
    /api/accounts/workers/

    Roster listing (filterable by department / rank) and worker
    registration.  Registration requires ``accounts.can_manage_workers``;
    the check lives in ``WorkerRosterService``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List roster workers",
        parameters=[WorkerFilterSerializer],
        responses={200: WorkerSerializer(many=True)},
        tags=["Workers"],
    )
    def list(self, request: Request) -> Response:
        filters = WorkerFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)
        workers = WorkerRosterService.list_workers(**filters.validated_data)
        return Response(WorkerSerializer(workers, many=True).data)

    @extend_schema(
        summary="Retrieve a roster worker",
        responses={200: WorkerSerializer, 404: OpenApiResponse(description="Not found.")},
        tags=["Workers"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        worker = WorkerRosterService.get_worker(int(pk))
        return Response(WorkerSerializer(worker).data)

    @extend_schema(
        summary="Register a worker",
        request=WorkerRegisterSerializer,
        responses={
            201: OpenApiResponse(response=WorkerSerializer, description="Worker registered."),
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Missing roster management permission."),
        },
        tags=["Workers"],
    )
    def create(self, request: Request) -> Response:
        serializer = WorkerRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        worker = WorkerRosterService.register_worker(
            serializer.validated_data, performed_by=request.user,
        )
        return Response(WorkerSerializer(worker).data, status=status.HTTP_201_CREATED)
