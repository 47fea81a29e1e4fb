# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Literal, Optional
from datetime import datetime

from storefront.domain import validation

StockStatus = Literal["in_stock", "low_stock", "out_of_stock"]


# ---------------------------------------------------------------- auth

class RegisterIn(BaseModel):
    """Schema dla rejestracji."""

    first_name: str
    last_name: str
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return validation.validate_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return validation.validate_name(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validation.validate_password_length(v)


class LoginIn(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return validation.validate_email(v)


class EmailIn(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return validation.validate_email(v)


class CodeIn(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        return validation.validate_verification_code(v)


class PasswordIn(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validation.validate_password_length(v)


class ChangePasswordIn(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _password(cls, v: str) -> str:
        return validation.validate_password_length(v)


class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    image: Optional[str] = None
    provider: str
    email_verified: bool
    is_admin: bool

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------- catalogue

class ProductImageOut(BaseModel):
    id: str
    url: str
    alt: str
    position: int

    model_config = ConfigDict(from_attributes=True)


class ProductVariantOut(BaseModel):
    id: str
    product_id: str
    sku: str
    name: str
    price: int
    stock_quantity: int
    stock_status: StockStatus
    attributes: dict = {}


class ProductOut(BaseModel):
    id: str
    slug: str
    name: str
    description: str
    category: str
    features: List[str] = []
    specifications: dict = {}
    is_accessory: bool
    images: List[ProductImageOut] = []
    variants: List[ProductVariantOut] = []


class ProductListOut(BaseModel):
    products: List[ProductOut]
    total: int
    page: int
    page_size: int


class ProductGroupOut(BaseModel):
    category: str
    products: List[ProductOut]


class CatalogueOut(BaseModel):
    groups: List[ProductGroupOut]
    total: int
    page: int
    page_size: int
    total_pages: int


class ProductDetailOut(BaseModel):
    product: ProductOut
    default_variant_id: Optional[str] = None


# ---------------------------------------------------------------- cart

class CompositeIn(BaseModel):
    variant_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_variant_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, description="Ilosc produktu (musi byc > 0)")
    composites: List[CompositeIn] = []


class ItemUpdateIn(BaseModel):
    # <= 0 usuwa pozycje
    quantity: int


class DiscountIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class CartCompositeOut(BaseModel):
    variant_id: str
    name: str
    quantity: int


class CartItemOut(BaseModel):
    id: str
    product_variant_id: str
    quantity: int
    price: int
    name: str
    product_id: str
    product_name: str
    product_slug: str
    image_url: str = ""
    stock_quantity: int
    stock_status: StockStatus
    composites: List[CartCompositeOut] = []


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    id: str
    items: List[CartItemOut]
    discount_code: Optional[str] = None
    discount_amount: int
    subtotal: int
    total: int
    item_count: int


# ---------------------------------------------------------------- orders

class ShippingAddressIn(BaseModel):
    # kompletnosc adresu sprawdza OrderService (OrderError zamiast 400 walidacji)
    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    address2: Optional[str] = None
    city: str = ""
    state: Optional[str] = None
    postal_code: str = ""
    country: str = ""
    email: str = ""
    phone: Optional[str] = None


class PlaceOrderIn(BaseModel):
    shipping_address: ShippingAddressIn
    shipping_method: Literal["standard", "express"] = "standard"
    payment_intent_id: str = Field(..., min_length=1)


class OrderCreate(BaseModel):
    """Wejscie do OrderService.create_order."""

    cart_id: str
    user_id: Optional[str] = None
    shipping_address: ShippingAddressIn
    shipping_method: str = "standard"
    payment_intent_id: str


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    variant_id: str
    name: str
    variant_name: str
    quantity: int
    unit_price: int
    total_price: int
    composites: List[CartCompositeOut] = []


class ShippingAddressOut(BaseModel):
    first_name: str
    last_name: str
    address1: str
    address2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str
    email: str
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: str
    order_number: str
    status: str
    subtotal: int
    discount_amount: int
    shipping_amount: int
    tax_amount: int
    total: int
    currency: str
    shipping_method: str
    payment_method: str
    created_at: datetime
    items: List[OrderItemOut]
    shipping_address: ShippingAddressOut


class OrderStatusIn(BaseModel):
    status: str
    note: Optional[str] = Field(None, max_length=500)


class PlaceOrderOut(BaseModel):
    success: bool
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------- content

class ContentSectionOut(BaseModel):
    title: str
    level: int
    content: str
    children: List["ContentSectionOut"] = []


class ContentOut(BaseModel):
    locale: str
    title: str
    intro: str
    sections: List[ContentSectionOut]
