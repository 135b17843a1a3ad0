# shop/urls.py — router + function views (auth, cart, admin stats)

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import auth_views, cart_views, views

router = DefaultRouter()
router.register(r"products", views.ProductViewSet, basename="product")
router.register(r"categories", views.CategoryViewSet, basename="category")
router.register(r"variants", views.ProductVariantViewSet, basename="variant")
router.register(r"orders", views.OrderViewSet, basename="order")


urlpatterns = [
    path("health", views.health),
    path("health/", views.health, name="health"),

    # Auth
    path("auth/register", auth_views.register, name="auth-register"),
    path("auth/login", auth_views.login_view, name="auth-login"),
    path("auth/logout", auth_views.logout_view, name="auth-logout"),
    path("auth/me", auth_views.me, name="auth-me"),
    path("auth/profile", auth_views.update_profile, name="auth-profile"),

    # Cart
    path("cart/",          cart_views.cart_detail,   name="cart-detail"),
    path("cart/add/",      cart_views.cart_add,      name="cart-add"),
    path("cart/update/",   cart_views.cart_update,   name="cart-update"),
    path("cart/clear/",    cart_views.cart_clear,    name="cart-clear"),
    path("cart/checkout/", cart_views.cart_checkout, name="cart-checkout"),

    # Admin
    path("admin/stats", views.admin_stats, name="admin-stats"),

    path("", include(router.urls)),
]
