# --- Imports ---
import logging

from fastapi import Depends, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session # For database session management

# Internal imports from sibling modules
from .config import settings
from .database import Base, engine, get_db
from .errors import FulfillmentError, NotFoundError
from .fulfillment import fulfill_order
from .models import ProductWarehouse
from .procedure import add_product_via_procedure
from .schemas import CreatedResponse, ProductWarehouseResponse, WarehouseRequest

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# --- Database Initialization ---
# Create the tables defined in models.py if they don't exist.
if settings.CREATE_TABLES:
    Base.metadata.create_all(bind=engine)

# --- App Instance ---
app = FastAPI(title="Warehouse Service")

PREFIX = settings.API_PREFIX


def movement_location(movement_id: int) -> str:
    return f"{PREFIX}/productwarehouse/{movement_id}"


# --- Error Handlers ---
@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
    """Render every workflow error with its own status code."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed bodies are client validation failures: 400, like a bad amount.
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# --- Endpoints ---
@app.get("/")
def root():
    """Health check endpoint."""
    return {"message": "Warehouse service is running"}


@app.post(f"{PREFIX}/warehouse", status_code=201, response_model=CreatedResponse)
def add_product_to_warehouse(req: WarehouseRequest, response: Response, db: Session = Depends(get_db)):
    """
    Fulfils the latest matching order and records the stock movement.
    - 404 if the product or warehouse is unknown.
    - 400 if the amount is not positive, no order matches, or the order is already fulfilled.
    """
    movement_id = fulfill_order(db, req)
    response.headers["Location"] = movement_location(movement_id)
    return {"id": movement_id}


@app.post(f"{PREFIX}/warehouse/procedure", status_code=201, response_model=CreatedResponse)
def add_product_to_warehouse_via_procedure(req: WarehouseRequest, response: Response, db: Session = Depends(get_db)):
    """Same contract as the endpoint above, delegated to the stored procedure."""
    movement_id = add_product_via_procedure(db, req, settings.PROCEDURE_NAME)
    response.headers["Location"] = movement_location(movement_id)
    return {"id": movement_id}


@app.get(f"{PREFIX}/productwarehouse/{{movement_id}}", response_model=ProductWarehouseResponse)
def get_product_warehouse(movement_id: int, db: Session = Depends(get_db)):
    """Retrieves a recorded stock movement by its ID."""
    movement = db.get(ProductWarehouse, movement_id)
    if movement is None:
        raise NotFoundError(f"Product_Warehouse {movement_id} not found")

    return ProductWarehouseResponse(
        id=movement.id,
        id_warehouse=movement.warehouse_id,
        id_product=movement.product_id,
        id_order=movement.order_id,
        amount=movement.amount,
        price=movement.price,
        created_at=movement.created_at,
    )
