# storefront/domain/errors.py
"""
Bledy domenowe - uzytkownik moze na nie zareagowac (400/404),
w odroznieniu od nieoczekiwanych wyjatkow (500).
"""


class ShopError(Exception):
    """Baza dla bledow, ktore uzytkownik moze poprawic."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ShopError):
    pass


class CartError(ShopError):
    pass


class CartNotFoundError(NotFoundError):
    def __init__(self, cart_id: str):
        super().__init__(f"Cart not found: {cart_id}")


class CartItemNotFoundError(NotFoundError):
    def __init__(self, cart_item_id: str):
        super().__init__(f"Cart item not found: {cart_item_id}")


class VariantNotFoundError(NotFoundError):
    def __init__(self, variant_id: str):
        super().__init__(f"Product variant not found: {variant_id}")


class StockError(CartError):
    pass


class DiscountError(CartError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, slug: str):
        super().__init__(f"Product not found: {slug}")


class OrderError(ShopError):
    pass


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")


class AuthError(ShopError):
    pass


class OAuthError(AuthError):
    pass


class EmailConflictError(AuthError):
    """Email nalezy juz do konta z innym dostawca logowania."""

    def __init__(self, email: str, provider: str, attempted_provider: str):
        super().__init__(f"Email {email} is already registered with {provider}")
        self.email = email
        self.provider = provider
        self.attempted_provider = attempted_provider


class FieldError(ShopError):
    """Blad walidacji jednego pola formularza."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
