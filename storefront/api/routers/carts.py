# storefront/api/routers/carts.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront.api.deps import (
    CART_SESSION_COOKIE,
    get_current_user_id,
    new_cart_session_id,
    set_cart_session_cookie,
)
from storefront.data.database import get_db
from storefront.data.models.cart import CartModel
from storefront.domain.errors import NotFoundError, ShopError
from storefront.domain.schemas import CartOut, DiscountIn, ItemIn, ItemUpdateIn
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session):
    return CartService(db)


def resolve_cart(request: Request, response: Response, svc: CartService, user_id: Optional[str]) -> CartModel:
    """Koszyk usera albo goscia (cookie cart-session, tworzone gdy brak)."""
    if user_id:
        return svc.get_or_create_cart(None, user_id)

    session_id = request.cookies.get(CART_SESSION_COOKIE)
    if not session_id:
        session_id = new_cart_session_id()
        set_cart_session_cookie(response, session_id)
    return svc.get_or_create_cart(session_id)


def to_http(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    return HTTPException(status_code=400, detail=e.message)


@router.get("", response_model=CartOut)
def get_cart(
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    return svc.build_view_model(cart)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.add_item(cart.id, payload.product_variant_id, payload.quantity, payload.composites)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: str,
    payload: ItemUpdateIn,
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.update_item_quantity(item_id, payload.quantity, cart_id=cart.id)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: str,
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.remove_item(item_id, cart_id=cart.id)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)


@router.post("/discount", response_model=CartOut)
def apply_discount(
    payload: DiscountIn,
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.apply_discount(cart.id, payload.code)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)


@router.delete("/discount", response_model=CartOut)
def remove_discount(
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.remove_discount(cart.id)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)


@router.delete("", response_model=CartOut)
def clear_cart(
    request: Request,
    response: Response,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    cart = resolve_cart(request, response, svc, user_id)
    try:
        svc.clear_cart(cart.id)
    except ShopError as e:
        raise to_http(e)
    return svc.build_view_model(cart)
