from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class WarehouseRequest(BaseModel):
    """Request to fulfil an order by recording stock in a warehouse."""
    model_config = ConfigDict(populate_by_name=True)

    id_product: int = Field(alias="idProduct")
    id_warehouse: int = Field(alias="idWarehouse")
    # Positivity is checked by the workflow so it maps to a 400, not a schema error.
    amount: int
    created_at: datetime = Field(alias="createdAt")


class CreatedResponse(BaseModel):
    id: int


class ProductWarehouseResponse(BaseModel):
    """A recorded stock movement, as returned by the Location URL."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    id_warehouse: int = Field(alias="idWarehouse")
    id_product: int = Field(alias="idProduct")
    id_order: int = Field(alias="idOrder")
    amount: int
    price: Decimal
    created_at: datetime = Field(alias="createdAt")
