# storefront/api/routers/orders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storefront.api.deps import (
    CART_SESSION_COOKIE,
    get_current_user_id,
    get_notification_service,
    require_admin,
    require_user,
)
from storefront.data.database import get_db
from storefront.data.models.order import format_order_number
from storefront.data.models.user import UserModel
from storefront.domain.errors import NotFoundError, ShopError
from storefront.domain.schemas import OrderCreate, OrderOut, OrderStatusIn, PlaceOrderIn, PlaceOrderOut
from storefront.repos.cart_repo import CartRepo
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

router = APIRouter(tags=["orders"])


def get_service(db: Session, notifications: NotificationService):
    return OrderService(db, notification_service=notifications)


@router.post("/checkout/place-order", response_model=PlaceOrderOut)
def place_order(
    payload: PlaceOrderIn,
    request: Request,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Tworzy zamowienie z koszyka biezacej sesji.
    Platnosc (payment_intent_id) jest juz autoryzowana wczesniej.
    """
    repo = CartRepo(db)
    if user_id:
        cart = repo.get_user_cart(user_id)
    else:
        session_id = request.cookies.get(CART_SESSION_COOKIE)
        cart = repo.get_anonymous_cart(session_id) if session_id else None

    if cart is None:
        return JSONResponse(status_code=400, content={"success": False, "error": "Cart is empty"})

    svc = get_service(db, notifications)
    try:
        order = svc.create_order(
            OrderCreate(
                cart_id=cart.id,
                user_id=user_id,
                shipping_address=payload.shipping_address,
                shipping_method=payload.shipping_method,
                payment_intent_id=payload.payment_intent_id,
            )
        )
    except ShopError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": e.message})

    return PlaceOrderOut(
        success=True,
        order_id=order.id,
        order_number=format_order_number(order.id, order.created_at),
    )


@router.get("/orders", response_model=List[OrderOut])
def list_orders(
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
):
    return get_service(db, notifications).get_orders_by_user_id(user.id, limit)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user: UserModel = Depends(require_user),
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, notifications)
    try:
        return svc.get_order_by_id(order_id, user)
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: str,
    payload: OrderStatusIn,
    admin: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
):
    svc = get_service(db, notifications)
    try:
        return svc.update_order_status(order_id, payload.status, payload.note)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ShopError as e:
        raise HTTPException(status_code=400, detail=e.message)
