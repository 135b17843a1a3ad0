# shop/auth_views.py — register / login / logout / me / profile over django.contrib.auth
from __future__ import annotations

import logging

from django.contrib.auth import authenticate, get_user_model, login, logout
from django.db import IntegrityError, transaction
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .exceptions import AuthError, ConflictError
from .identity import resolve_actor
from .models import Profile
from .serializers import LoginSerializer, ProfileUpdateSerializer, RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


def _email_taken(email: str) -> bool:
    return User.objects.filter(username__iexact=email).exists()


def _auth_payload(user) -> dict:
    token, _ = Token.objects.get_or_create(user=user)
    return {"user": UserSerializer(user).data, "token": token.key}


@api_view(["POST"])
@permission_classes([AllowAny])
def register(request):
    """
    Payload: { "email", "password", "name", "phone"?, "address"? }
    The email doubles as username. Logs the new customer in (session + token).
    """
    ser = RegisterSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    data = ser.validated_data

    if _email_taken(data["email"]):
        raise ConflictError("Email already registered.", field="email")

    try:
        with transaction.atomic():
            user = User.objects.create_user(username=data["email"], email=data["email"], password=data["password"])
            profile = user.profile
            profile.name = data["name"].strip()
            profile.phone = data["phone"].strip()
            profile.address = data["address"].strip()
            profile.save()
    except IntegrityError:
        # a concurrent registration won the unique username
        raise ConflictError("Email already registered.", field="email")

    login(request, user, backend="django.contrib.auth.backends.ModelBackend")
    logger.info("Registered customer %s", user.pk)
    return Response(_auth_payload(user), status=201)


@api_view(["POST"])
@permission_classes([AllowAny])
def login_view(request):
    ser = LoginSerializer(data=request.data)
    ser.is_valid(raise_exception=True)
    email = ser.validated_data["email"].strip().lower()

    user = authenticate(request, username=email, password=ser.validated_data["password"])
    if user is None:
        raise AuthError("Invalid email or password.")
    login(request, user)
    return Response(_auth_payload(user))


@api_view(["POST"])
@permission_classes([AllowAny])
def logout_view(request):
    if request.user.is_authenticated:
        Token.objects.filter(user=request.user).delete()
    logout(request)
    return Response({"ok": True})


@api_view(["GET"])
@permission_classes([AllowAny])
def me(request):
    actor = resolve_actor(request)
    if not actor.is_authenticated:
        raise AuthError("Not logged in.")
    return Response(UserSerializer(actor.user).data)


@api_view(["PUT", "PATCH"])
@permission_classes([AllowAny])
def update_profile(request):
    actor = resolve_actor(request)
    if not actor.is_authenticated:
        raise AuthError("Not logged in.")

    ser = ProfileUpdateSerializer(data=request.data, partial=True)
    ser.is_valid(raise_exception=True)

    profile, _ = Profile.objects.get_or_create(user=actor.user)
    for field, value in ser.validated_data.items():
        setattr(profile, field, value.strip())
    profile.save()
    return Response(UserSerializer(User.objects.select_related("profile").get(pk=actor.user_id)).data)
