# shop/views.py — ViewSets (products, categories, variants, orders) + admin stats

from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q
from django.http import JsonResponse
from rest_framework import filters, mixins, permissions, status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from . import uploads
from .cart import SessionCart
from .exceptions import AuthError, OrderValidationError
from .filters import OrderFilter, ProductFilter, VariantFilter
from .identity import resolve_actor
from .models import Category, Order, Product, ProductVariant
from .serializers import (
    AdminOrderReadSerializer,
    CategorySerializer,
    CheckoutSerializer,
    OrderReadSerializer,
    ProductSerializer,
    ProductVariantSerializer,
    StatusSerializer,
)
from .services import orders
from .storage import storage


class IsAdminOrReadOnly(permissions.BasePermission):
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        return bool(request.user and request.user.is_authenticated and request.user.is_staff)


def _wants_inactive(request) -> bool:
    return (
        resolve_actor(request).is_admin
        and request.query_params.get("include_inactive", "").lower() in ("1", "true", "yes")
    )


class SoftDeleteMixin:
    """DELETE marks the row inactive; history (order items) keeps pointing at it."""

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=["is_active"])


# -------------------------------------------------
# Categories
# -------------------------------------------------
class CategoryViewSet(SoftDeleteMixin, viewsets.ModelViewSet):
    permission_classes = [IsAdminOrReadOnly]
    serializer_class = CategorySerializer
    pagination_class = None
    filter_backends = [filters.SearchFilter]
    search_fields = ["name", "slug"]

    def get_queryset(self):
        qs = Category.objects.annotate(
            product_count=Count("products", filter=Q(products__is_active=True))
        ).order_by("sort_order", "name")
        if self.action in ("list", "retrieve") and not _wants_inactive(self.request):
            qs = qs.filter(is_active=True)
        return qs


# -------------------------------------------------
# Products (CRUD, soft delete, image upload)
# -------------------------------------------------
SAMPLE_PRODUCTS = [
    {"name": "Massage Oil Set", "price": Decimal("399"), "stock": 30, "description": "Warming massage oil set"},
    {"name": "Lace Lingerie - Black", "price": Decimal("299"), "stock": 25, "description": "Elegant lace set"},
    {"name": "Starter Kit", "price": Decimal("888"), "stock": 20, "description": "Beginner kit"},
    {"name": "Water-based Lubricant", "price": Decimal("158"), "stock": 100, "description": "Imported formula"},
]


class ProductViewSet(SoftDeleteMixin, viewsets.ModelViewSet):
    permission_classes = [IsAdminOrReadOnly]
    serializer_class = ProductSerializer
    filterset_class = ProductFilter
    search_fields = ["name", "product_code", "barcode", "description"]
    ordering_fields = ["id", "name", "price", "stock", "created_at"]

    def get_queryset(self):
        qs = (
            Product.objects
            .select_related("category")
            .prefetch_related("variants")
            .order_by("-id")
        )
        actor = resolve_actor(self.request)
        if not actor.is_admin:
            return qs.active()
        if self.action == "list" and not _wants_inactive(self.request):
            return qs.active()
        return qs

    @action(detail=True, methods=["post"], parser_classes=[MultiPartParser, FormParser], url_path="image")
    def image(self, request, pk=None):
        product = self.get_object()
        uploaded = request.FILES.get("image")
        if uploaded is None:
            raise OrderValidationError("Missing file field 'image'.", field="image")
        reference = uploads.store(uploaded, uploads.PRODUCT_IMAGES)
        previous = product.image
        product.image = reference
        product.save(update_fields=["image", "updated_at"])
        if previous.startswith(uploads.BASE_DIR + "/"):
            uploads.discard(previous)
        return Response(self.get_serializer(product).data)

    @action(detail=False, methods=["post"])
    def seed(self, request):
        if not (getattr(settings, "ENABLE_SEED", False) or settings.DEBUG):
            return Response({"detail": "Seeding disabled.", "code": "forbidden"}, status=403)
        created = 0
        for data in SAMPLE_PRODUCTS:
            _, was_created = Product.objects.get_or_create(name=data["name"], defaults=data)
            created += int(was_created)
        return Response({"created": created})


# -------------------------------------------------
# Variants
# -------------------------------------------------
class ProductVariantViewSet(SoftDeleteMixin, viewsets.ModelViewSet):
    permission_classes = [IsAdminOrReadOnly]
    serializer_class = ProductVariantSerializer
    filterset_class = VariantFilter
    pagination_class = None

    def get_queryset(self):
        qs = ProductVariant.objects.select_related("product")
        if self.action in ("list", "retrieve") and not _wants_inactive(self.request):
            qs = qs.active().filter(product__is_active=True)
        return qs


# -------------------------------------------------
# Orders: checkout, listing, status, delete
# -------------------------------------------------
class OrderViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    filterset_class = OrderFilter
    search_fields = ["order_number", "shipping_name"]
    ordering_fields = ["created_at", "total", "status"]

    def get_queryset(self):
        actor = resolve_actor(self.request)
        return orders.list_orders(actor, status=self.request.query_params.get("status") or None)

    def get_serializer_class(self):
        if resolve_actor(self.request).is_admin:
            return AdminOrderReadSerializer
        return OrderReadSerializer

    def retrieve(self, request, pk=None):
        order = orders.get_order(resolve_actor(request), pk)
        return Response(self.get_serializer(order).data)

    def create(self, request):
        actor = resolve_actor(request)
        if not actor.is_authenticated:
            raise AuthError("Login required.")

        ser = CheckoutSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        # reject invalid checkouts before the proof file is written
        orders.validate_checkout(
            data["items"], data["total"],
            data["shippingName"], data["shippingPhone"], data["shippingAddress"],
        )

        proof_ref = ""
        if data.get("proof") is not None:
            proof_ref = uploads.store(data["proof"], uploads.PAYMENT_PROOFS)
        try:
            order = orders.create_order(
                actor,
                data["items"],
                data["total"],
                data["shippingName"],
                data["shippingPhone"],
                data["shippingAddress"],
                proof_reference=proof_ref,
                cart=SessionCart(request.session),
            )
        except Exception:
            uploads.discard(proof_ref)
            raise
        return Response(
            {"orderId": order.id, "orderNumber": order.order_number},
            status=status.HTTP_201_CREATED,
        )

    def destroy(self, request, pk=None):
        orders.delete_order(resolve_actor(request), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["put", "patch"], url_path="status")
    def set_status(self, request, pk=None):
        ser = StatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        order = orders.transition_status(resolve_actor(request), pk, ser.validated_data["status"])
        return Response({"id": order.id, "orderNumber": order.order_number, "status": order.status})


# =========================================================
# Admin stats (hand-written aggregates through the storage adapter)
# =========================================================
def _money(value) -> str:
    return str(Decimal(str(value or 0)).quantize(Decimal("0.01")))


@api_view(["GET"])
@permission_classes([permissions.IsAdminUser])
def admin_stats(request):
    totals = storage.fetch_one(
        "SELECT COUNT(*) AS orders,"
        " COALESCE(SUM(CASE WHEN status <> %s THEN 1 ELSE 0 END), 0) AS billable,"
        " COALESCE(SUM(CASE WHEN status <> %s THEN total ELSE 0 END), 0) AS revenue"
        " FROM orders",
        [Order.CANCELLED, Order.CANCELLED],
    )
    by_status = storage.fetch_all(
        "SELECT status, COUNT(*) AS count FROM orders GROUP BY status ORDER BY status", []
    )
    products = storage.fetch_one(
        "SELECT COUNT(*) AS count FROM products WHERE is_active = %s", [True]
    )
    threshold = int(getattr(settings, "LOW_STOCK_THRESHOLD", 5))
    low_stock = storage.fetch_all(
        "SELECT id, name, stock FROM products WHERE is_active = %s AND stock <= %s ORDER BY stock, id",
        [True, threshold],
    )

    billable = int(totals["billable"] or 0)
    revenue = Decimal(str(totals["revenue"] or 0))
    return Response({
        "orders": int(totals["orders"] or 0),
        "revenue": _money(revenue),
        "avg_ticket": _money(revenue / billable if billable else 0),
        "by_status": {row["status"]: int(row["count"]) for row in by_status},
        "products": int(products["count"] or 0),
        "low_stock": [
            {"id": row["id"], "name": row["name"], "stock": int(row["stock"])} for row in low_stock
        ],
        "low_stock_threshold": threshold,
    })


def health(_request):
    return JsonResponse({"service": "Storefront Backend", "status": "healthy"})
