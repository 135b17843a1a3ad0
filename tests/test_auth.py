import pytest
from django.contrib.auth import get_user_model
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from shop import auth_views
from shop.identity import ADMIN, ANONYMOUS, CUSTOMER, Actor
from shop.models import Profile

pytestmark = pytest.mark.django_db


def test_actor_classification(customer, admin_user):
    assert Actor.for_user(None).kind == ANONYMOUS
    assert Actor.for_user(customer).kind == CUSTOMER
    assert Actor.for_user(admin_user).is_admin

    customer.is_active = False
    assert Actor.for_user(customer).kind == ANONYMOUS


def test_new_users_get_a_profile(customer):
    assert Profile.objects.filter(user=customer).exists()


def test_register_login_me_logout(api_client):
    resp = api_client.post("/api/auth/register", {
        "email": "New@Example.com", "password": "secret123", "name": "New Person", "phone": "123",
    }, format="json")
    assert resp.status_code == 201, resp.data
    assert resp.data["user"]["email"] == "new@example.com"
    assert resp.data["user"]["name"] == "New Person"
    token = resp.data["token"]

    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Token {token}")
    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.data["phone"] == "123"
    assert me.data["is_admin"] is False

    login = APIClient().post("/api/auth/login", {"email": "new@example.com", "password": "secret123"}, format="json")
    assert login.status_code == 200
    assert login.data["token"] == token

    assert client.post("/api/auth/logout").status_code == 200
    assert not Token.objects.filter(key=token).exists()


def test_register_duplicate_email(api_client, customer):
    resp = api_client.post("/api/auth/register", {
        "email": "ANA@example.com", "password": "secret123", "name": "Ana",
    }, format="json")
    assert resp.status_code == 409
    assert resp.data["code"] == "conflict"
    assert get_user_model().objects.filter(email__iexact="ana@example.com").count() == 1


def test_register_lost_race_is_a_conflict(api_client, customer, monkeypatch):
    # the pre-check misses a user inserted by a concurrent request; the unique key catches it
    monkeypatch.setattr(auth_views, "_email_taken", lambda email: False)

    resp = api_client.post("/api/auth/register", {
        "email": "ana@example.com", "password": "secret123", "name": "Ana",
    }, format="json")

    assert resp.status_code == 409
    assert resp.data["code"] == "conflict"
    assert resp.data["field"] == "email"
    assert get_user_model().objects.filter(username="ana@example.com").count() == 1


def test_login_wrong_password(api_client, customer):
    resp = api_client.post("/api/auth/login", {"email": "ana@example.com", "password": "nope"}, format="json")
    assert resp.status_code == 401
    assert resp.data["code"] == "auth_error"


def test_me_anonymous(api_client):
    assert api_client.get("/api/auth/me").status_code == 401


def test_update_profile(customer_client):
    resp = customer_client.patch("/api/auth/profile", {"address": " Rua B, 2 "}, format="json")
    assert resp.status_code == 200
    assert resp.data["address"] == "Rua B, 2"
