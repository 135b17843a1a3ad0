# shop/serializers.py — catalogue + orders, separate WRITE (checkout) and READ serializers
import json

from django.contrib.auth import get_user_model
from rest_framework import serializers

from . import uploads
from .models import Category, Order, OrderItem, Product, ProductVariant

User = get_user_model()


# --------- Categories ---------
class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta:
        model = Category
        fields = ["id", "name", "slug", "parent", "sort_order", "is_active", "created_at", "product_count"]
        read_only_fields = ["created_at"]

    def get_product_count(self, obj):
        return int(getattr(obj, "product_count", 0) or 0)


# --------- Products ---------
class ProductVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariant
        fields = ["id", "product", "name", "value", "price_modifier", "stock", "sku", "is_active"]

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative.")
        return value


class ProductSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(),
        source="category",
        write_only=True,
        required=False,
        allow_null=True,
    )
    image_url = serializers.SerializerMethodField()
    variants = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id",
            "product_code",
            "name",
            "description",
            "price",
            "barcode",
            "category",
            "category_id",
            "image",
            "image_url",
            "stock",
            "is_active",
            "variants",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["image", "created_at", "updated_at"]

    def get_image_url(self, obj):
        return uploads.url_for(obj.image)

    def get_variants(self, obj):
        return ProductVariantSerializer(
            [v for v in obj.variants.all() if v.is_active], many=True
        ).data

    def validate_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Stock cannot be negative.")
        return value

    def validate_product_code(self, value):
        return (value or "").strip() or None


# ===========================
#  CHECKOUT (WRITE)
# ===========================
class CartLinesField(serializers.Field):
    """
    items arrive as a JSON list (application/json) or as a JSON string
    (multipart/form-data, next to the proof file).
    """

    def to_internal_value(self, data):
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                raise serializers.ValidationError("items must be a JSON list.")
        if not isinstance(data, list):
            raise serializers.ValidationError("items must be a list.")
        return data

    def to_representation(self, value):
        return value


class CheckoutSerializer(serializers.Serializer):
    """
    Only checks presence/shape; the order service owns the business validation.
    Body: {items: [{productId, quantity, price}], total, shippingName, shippingPhone,
           shippingAddress} + optional file "proof".
    """
    items = CartLinesField()
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    shippingName = serializers.CharField(max_length=255)
    shippingPhone = serializers.CharField(max_length=32)
    shippingAddress = serializers.CharField()
    proof = serializers.FileField(required=False, allow_empty_file=True)


class CartCheckoutSerializer(serializers.Serializer):
    shippingName = serializers.CharField(max_length=255)
    shippingPhone = serializers.CharField(max_length=32)
    shippingAddress = serializers.CharField()
    proof = serializers.FileField(required=False, allow_empty_file=True)


class StatusSerializer(serializers.Serializer):
    status = serializers.CharField()


# ===========================
#  ORDERS (READ)
# ===========================
class OrderItemReadSerializer(serializers.ModelSerializer):
    # stored name/price are the values of record; current_* are for display only
    current_name = serializers.CharField(source="product.name", read_only=True)
    product_code = serializers.CharField(source="product.product_code", read_only=True, default=None)
    line_total = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ("id", "product", "product_name", "price", "quantity", "line_total", "current_name", "product_code")


class OrderReadSerializer(serializers.ModelSerializer):
    items = OrderItemReadSerializer(many=True, read_only=True)
    payment_proof_url = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = (
            "id",
            "order_number",
            "user",
            "total",
            "status",
            "payment_proof",
            "payment_proof_url",
            "shipping_name",
            "shipping_phone",
            "shipping_address",
            "items",
            "created_at",
            "updated_at",
        )

    def get_payment_proof_url(self, obj):
        return uploads.url_for(obj.payment_proof)


class AdminOrderReadSerializer(OrderReadSerializer):
    customer_name = serializers.SerializerMethodField()
    customer_email = serializers.SerializerMethodField()

    class Meta(OrderReadSerializer.Meta):
        fields = OrderReadSerializer.Meta.fields + ("customer_name", "customer_email")

    def get_customer_name(self, obj):
        if obj.user is None:
            return ""
        profile = getattr(obj.user, "profile", None)
        return (profile.name if profile else "") or obj.user.get_full_name()

    def get_customer_email(self, obj):
        return obj.user.email if obj.user else ""


# ===========================
#  USERS
# ===========================
class UserSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    phone = serializers.SerializerMethodField()
    address = serializers.SerializerMethodField()
    is_admin = serializers.BooleanField(source="is_staff", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "name", "phone", "address", "is_admin", "date_joined"]

    def _profile(self, obj):
        return getattr(obj, "profile", None)

    def get_name(self, obj):
        p = self._profile(obj)
        return p.name if p else ""

    def get_phone(self, obj):
        p = self._profile(obj)
        return p.phone if p else ""

    def get_address(self, obj):
        p = self._profile(obj)
        return p.address if p else ""


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True)
    name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    address = serializers.CharField(required=False, allow_blank=True, default="")

    def validate_email(self, value):
        return value.strip().lower()


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(required=False, allow_blank=True)
