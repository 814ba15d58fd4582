"""
SQLAlchemy Database Models

Relational schema for the pizza service:
- users and their role assignments
- auth sessions keyed by token signature
- franchises and their stores
- the global menu
- diner orders and their items

Orders reference users and menu items but not stores or franchises, so
deleting a store never touches its order history.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum

from pizza_service.database import Base
from pizza_service.schemas import Role

# SQLite reuses the highest rowid after a delete unless AUTOINCREMENT is set
_TABLE_ARGS = {"sqlite_autoincrement": True}


class UserRow(Base):
    __tablename__ = "users"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    password = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<User #{self.id} - {self.email}>"


class UserRoleRow(Base):
    __tablename__ = "user_roles"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(Enum(Role, values_callable=lambda e: [r.value for r in e]), nullable=False)
    # Franchise id for franchisees, 0 otherwise
    object_id = Column(Integer, nullable=False, default=0, index=True)

    def __repr__(self):
        return f"<UserRole {self.user_id} - {self.role.value} - {self.object_id}>"


class AuthRow(Base):
    __tablename__ = "auth_sessions"

    token = Column(String(512), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)


class FranchiseRow(Base):
    __tablename__ = "franchises"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Franchise #{self.id} - {self.name}>"


class StoreRow(Base):
    __tablename__ = "stores"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    franchise_id = Column(Integer, ForeignKey("franchises.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)


class MenuRow(Base):
    __tablename__ = "menu_items"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1024), nullable=False, default="")
    image = Column(String(1024), nullable=False, default="")
    price = Column(Float(precision=53), nullable=False)


class DinerOrderRow(Base):
    __tablename__ = "diner_orders"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    diner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    franchise_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False, index=True)
    date = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<DinerOrder #{self.id} - diner {self.diner_id} - store {self.store_id}>"


class OrderItemRow(Base):
    __tablename__ = "order_items"
    __table_args__ = _TABLE_ARGS

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("diner_orders.id"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    description = Column(String(1024), nullable=False)
    price = Column(Float(precision=53), nullable=False)
