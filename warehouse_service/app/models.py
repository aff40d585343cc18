from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from .database import Base # Import the Base class from our database setup

# ORM models mapped onto the existing warehouse schema. Table and column names
# follow that schema; attribute names are snake_case.


class Product(Base):
    __tablename__ = "Product"

    id = Column("IdProduct", Integer, primary_key=True, index=True)
    name = Column("Name", String(200), nullable=False)
    description = Column("Description", String(200), nullable=False, default="")
    price = Column("Price", Numeric(25, 2), nullable=False) # Unit price.


class Warehouse(Base):
    __tablename__ = "Warehouse"

    id = Column("IdWarehouse", Integer, primary_key=True, index=True)
    name = Column("Name", String(200), nullable=False)
    address = Column("Address", String(200), nullable=False, default="")


# A demand for a product quantity. Becomes fulfilled once matched to a stock movement.
class Order(Base):
    __tablename__ = "Order"

    id = Column("IdOrder", Integer, primary_key=True, index=True)
    product_id = Column("IdProduct", Integer, ForeignKey("Product.IdProduct"), nullable=False)
    amount = Column("Amount", Integer, nullable=False) # Requested quantity.
    created_at = Column("CreatedAt", DateTime, nullable=False)
    fulfilled_at = Column("FulfilledAt", DateTime, nullable=True) # Set once, on fulfillment.


# Stock allocated to a warehouse against a specific order. One row per fulfilled order.
class ProductWarehouse(Base):
    __tablename__ = "Product_Warehouse"

    id = Column("IdProductWarehouse", Integer, primary_key=True, index=True)
    warehouse_id = Column("IdWarehouse", Integer, ForeignKey("Warehouse.IdWarehouse"), nullable=False)
    product_id = Column("IdProduct", Integer, ForeignKey("Product.IdProduct"), nullable=False)
    order_id = Column("IdOrder", Integer, ForeignKey("Order.IdOrder"), nullable=False, index=True)
    amount = Column("Amount", Integer, nullable=False)
    price = Column("Price", Numeric(25, 2), nullable=False) # Unit price times amount.
    created_at = Column("CreatedAt", DateTime, nullable=False)
