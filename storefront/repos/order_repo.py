# storefront/repos/order_repo.py
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderStatusHistoryModel
from storefront.data.types import utcnow


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        # bez commita - zamowienie, stan i czyszczenie koszyka w jednej transakcji
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str) -> Optional[OrderModel]:
        return self.db.get(OrderModel, order_id)

    def get_orders_by_user(self, user_id: str, limit: Optional[int] = None) -> List[OrderModel]:
        query = (
            self.db.query(OrderModel)
            .filter(OrderModel.user_id == user_id)
            .order_by(OrderModel.created_at.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def add_status_history(self, order: OrderModel, status: str, note: Optional[str] = None) -> None:
        order.status_history.append(OrderStatusHistoryModel(status=status, note=note))

    def update_order_status(self, order: OrderModel, status: str, note: Optional[str] = None) -> OrderModel:
        order.status = status
        order.updated_at = utcnow()
        self.add_status_history(order, status, note)
        self.db.commit()
        self.db.refresh(order)
        return order

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
