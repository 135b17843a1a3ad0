# shop/admin.py
from django.contrib import admin
from django.utils.html import format_html

from . import uploads
from .forms import ProductAdminForm
from .models import Category, Order, OrderItem, Product, ProductVariant, Profile


# ===============================
# Category
# ===============================
@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "slug", "parent", "sort_order", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


# ===============================
# Product / variants
# ===============================
class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 1
    fields = ("name", "value", "price_modifier", "stock", "sku", "is_active")


def _thumb(ref, size=40):
    url = uploads.url_for(ref)
    if not url:
        return "-"
    return format_html(
        '<img src="{}" style="height:{}px;width:{}px;object-fit:cover;border-radius:6px;" />',
        url, size, size,
    )


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    form = ProductAdminForm
    list_display = ("id", "name", "product_code", "price", "stock", "category", "is_active", "thumb")
    list_filter = ("is_active", "category")
    search_fields = ("name", "product_code", "barcode", "description")
    inlines = [ProductVariantInline]
    readonly_fields = ("thumb_preview",)
    fieldsets = (
        (None, {"fields": ("product_code", "barcode", "name", "description", "category", "is_active")}),
        ("Price and stock", {"fields": ("price", "stock")}),
        ("Image", {"fields": ("image", "thumb_preview")}),
    )

    def thumb(self, obj):
        return _thumb(obj.image)
    thumb.short_description = "Thumb"

    def thumb_preview(self, obj):
        return _thumb(obj.image, size=160)
    thumb_preview.short_description = "Preview"


# ===============================
# Order / OrderItem
# ===============================
class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    fields = ("product", "product_name", "price", "quantity")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "order_number", "shipping_name", "status", "total", "created_at")
    list_filter = ("status",)
    search_fields = ("order_number", "shipping_name", "user__email")
    # status moves only through the order service
    readonly_fields = ("order_number", "user", "status", "total", "payment_proof", "created_at", "updated_at")
    inlines = [OrderItemInline]
    date_hierarchy = "created_at"


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "name", "phone")
    search_fields = ("name", "user__email", "phone")
