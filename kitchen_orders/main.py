import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from kitchen_orders.core.db import init_db, close_db
from kitchen_orders.api.v1.auth import router as auth_router
from kitchen_orders.api.v1.items import router as items_router
from kitchen_orders.api.v1.suppliers import router as suppliers_router
from kitchen_orders.api.v1.categories import router as categories_router
from kitchen_orders.api.v1.units import router as units_router
from kitchen_orders.api.v1.users import router as users_router
from kitchen_orders.api.v1.restaurants import router as restaurants_router
from kitchen_orders.api.v1.orders import router as orders_router
from kitchen_orders.api.v1.stats import router as stats_router
from kitchen_orders.core.config import CORS_ORIGINS, PROJECT_NAME, VERSION
from kitchen_orders.core.exception_handlers import setup_exception_handlers
from kitchen_orders.services.notification import TransportRegistry

log = logging.getLogger("uvicorn")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas
    yield
    app.state.transports.clear()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# One mail transport handle per restaurant for the life of the process
app.state.transports = TransportRegistry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers for modular API structure
app.include_router(auth_router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(restaurants_router, prefix="/api/v1/restaurants", tags=["Restaurants"])
app.include_router(users_router, prefix="/api/v1/users", tags=["Users"])
app.include_router(suppliers_router, prefix="/api/v1/suppliers", tags=["Suppliers"])
app.include_router(categories_router, prefix="/api/v1/categories", tags=["Categories"])
app.include_router(units_router, prefix="/api/v1/units", tags=["Units of Measure"])
app.include_router(items_router, prefix="/api/v1/items", tags=["Items"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(stats_router, prefix="/api/v1/stats", tags=["Stats"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
