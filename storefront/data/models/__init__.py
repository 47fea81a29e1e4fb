#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.user import UserModel
from storefront.data.models.session import (
    SessionModel,
    PasswordResetSessionModel,
    EmailVerificationRequestModel,
)
from storefront.data.models.product import ProductModel, ProductVariantModel, ProductImageModel
from storefront.data.models.discount import DiscountModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import (
    OrderModel,
    OrderItemModel,
    OrderAddressModel,
    OrderStatusHistoryModel,
)

__all__ = [
    "UserModel",
    "SessionModel",
    "PasswordResetSessionModel",
    "EmailVerificationRequestModel",
    "ProductModel",
    "ProductVariantModel",
    "ProductImageModel",
    "DiscountModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderAddressModel",
    "OrderStatusHistoryModel",
]
