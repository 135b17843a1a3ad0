# shop/forms.py
from decimal import Decimal, InvalidOperation

from django import forms

from .models import Product


def _parse_price(raw) -> Decimal:
    """
    Accepts '1,234.56', '1234.56', '36.9', '36' (and the '36,90' decimal-comma form).
    Returns a Decimal with two places.
    """
    s = str(raw if raw is not None else "").strip().replace(" ", "")
    if not s:
        raise forms.ValidationError("Price is required.")

    if "," in s and "." in s:
        s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")

    try:
        val = Decimal(s)
    except InvalidOperation:
        raise forms.ValidationError("Invalid amount. Use something like 129.90.")

    if val < 0:
        raise forms.ValidationError("Price cannot be negative.")
    return val.quantize(Decimal("0.01"))


class ProductAdminForm(forms.ModelForm):
    """
    Product editing for the Django admin.
    Price is typed as free text and normalised; stock must be >= 0.
    """
    price = forms.CharField(label="Price", help_text="e.g. 129.90")

    class Meta:
        model = Product
        fields = (
            "product_code", "barcode", "name", "description", "category",
            "price", "stock", "image", "is_active",
        )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            self.initial["price"] = f"{self.instance.price:.2f}"
        self.fields["product_code"].help_text = "Unique catalogue code (optional)."

    def clean_price(self):
        return _parse_price(self.cleaned_data.get("price"))

    def clean_stock(self):
        v = self.cleaned_data.get("stock")
        if v is None:
            return 0
        if v < 0:
            raise forms.ValidationError("Stock cannot be negative.")
        return v

    def clean_product_code(self):
        code = (self.cleaned_data.get("product_code") or "").strip()
        return code or None
