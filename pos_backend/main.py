from fastapi import APIRouter, Depends, FastAPI, Form, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from pos_backend import catalog
from pos_backend.auth import (
    AuthorizationGate,
    Capability,
    Identity,
    authenticate,
    create_access_token,
    describe,
    require,
)
from pos_backend.config import Settings
from pos_backend.database import Base, get_db, make_engine, make_session_factory
from pos_backend.earnings import EarningsAggregator, parse_day
from pos_backend.errors import NotFound, ValidationError
from pos_backend.logging import configure_logging, get_logger
from pos_backend.orders import OrderRepository, parse_product_ids
from pos_backend.public import PublicShareResolver
from pos_backend.schemas import (
    OrderOut,
    PrintableOrder,
    ProductOut,
    UserOut,
    failure,
    ok,
)

logger = get_logger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orders(db: Session = Depends(get_db)) -> OrderRepository:
    return OrderRepository(db)


def get_earnings(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> EarningsAggregator:
    return EarningsAggregator(db, settings)


def get_resolver(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> PublicShareResolver:
    return PublicShareResolver(db, settings)


@router.get("/", tags=["Root"])
def read_root():
    return {"message": "POS backend is running!"}


# Sessions
@router.post("/login", tags=["Authentication"], summary="Log in and start a session")
def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    identity = authenticate(db, settings, form_data.username, form_data.password)
    if identity is None:
        logger.warning(f"Failed login for {form_data.username!r}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    access_token = create_access_token(identity, settings)
    response.set_cookie(
        settings.session_cookie_name,
        access_token,
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )
    logger.info(f"{identity.username} logged in (admin={identity.is_admin})")
    return ok({
        "access_token": access_token,
        "token_type": "bearer",
        "user": UserOut.from_identity(identity),
    })


@router.post("/logout", tags=["Authentication"], summary="End the current session")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(settings.session_cookie_name)
    return ok()


@router.get("/api/user", tags=["Authentication"], summary="Get the current user")
def current_user(request: Request):
    identity = request.app.state.gate.identify(request)
    return ok(UserOut.from_identity(identity))


@router.post("/api/users", tags=["Users"], summary="Create a staff account")
def create_user(
    username: str = Form(""),
    password: str = Form(""),
    is_admin: bool = Form(False),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    user = catalog.create_user(db, username, password, is_admin=is_admin)
    return ok(UserOut(username=user.username, is_admin=user.is_admin))


# Products
@router.post("/api/product", tags=["Products"], summary="Add a new product")
def add_product(
    name: str = Form(""),
    price: str = Form(""),
    type: str = Form(""),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    product = catalog.create_product(db, name, price, type)
    return ok(ProductOut.from_model(product))


@router.get("/api/products", tags=["Products"], summary="List all products")
def list_products(db: Session = Depends(get_db)):
    return ok([ProductOut.from_model(product) for product in catalog.list_products(db)])


# Order Management
@router.post("/api/order", tags=["Orders"], summary="Create a new order")
def create_order(
    products: str = Form(""),
    orders: OrderRepository = Depends(get_orders),
    identity: Identity = Depends(require(Capability.STAFF)),
):
    order = orders.create_order(parse_product_ids(products))
    return ok(OrderOut.from_model(order))


@router.get("/api/orders", tags=["Orders"], summary="List orders, newest first")
def list_all_orders(
    active: bool = False,
    orders: OrderRepository = Depends(get_orders),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    return ok([OrderOut.from_model(order) for order in orders.list_orders(active_only=active)])


@router.get("/api/orders/earnings", tags=["Earnings"], summary="Total earnings")
def total_earnings(
    earnings: EarningsAggregator = Depends(get_earnings),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    return ok({"total": float(earnings.total_earnings())})


@router.get("/api/orders/earnigns/{day}", tags=["Earnings"], summary="Earnings for one day")
@router.get("/api/orders/earnings/{day}", tags=["Earnings"], summary="Earnings for one day")
def earnings_per_day(
    day: str,
    earnings: EarningsAggregator = Depends(get_earnings),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    parsed = parse_day(day)
    return ok({"day": parsed.isoformat(), "total": float(earnings.earnings_per_day(parsed))})


@router.get("/api/orders/totals/export", tags=["Earnings"], summary="Export daily totals as CSV")
def export_totals(
    earnings: EarningsAggregator = Depends(get_earnings),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    return Response(
        content=earnings.export_totals(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="totals.csv"'},
    )


@router.get("/api/order/{order_id}", tags=["Orders"], summary="Get an order for printing")
def print_order(
    order_id: int,
    orders: OrderRepository = Depends(get_orders),
    resolver: PublicShareResolver = Depends(get_resolver),
    identity: Identity = Depends(require(Capability.STAFF)),
):
    order = orders.get_order(order_id)
    return ok(PrintableOrder(**OrderOut.from_model(order).model_dump(), shop=resolver.shop()))


@router.delete("/api/order/{order_id}", tags=["Orders"], summary="Cancel an order")
def cancel_order(
    order_id: int,
    orders: OrderRepository = Depends(get_orders),
    identity: Identity = Depends(require(Capability.ADMIN)),
):
    order = orders.cancel_order(order_id, actor=describe(identity))
    return ok(OrderOut.from_model(order))


@router.get("/api/order/{public_id}/pub", tags=["Receipts"], summary="Public receipt")
def public_order(public_id: str, resolver: PublicShareResolver = Depends(get_resolver)):
    return ok(resolver.resolve_public(public_id))


@router.get("/api/order/{order_id}/qrcode", tags=["Receipts"], summary="QR code of the public receipt URL")
def order_qrcode(
    order_id: int,
    orders: OrderRepository = Depends(get_orders),
    resolver: PublicShareResolver = Depends(get_resolver),
    identity: Identity = Depends(require(Capability.STAFF)),
):
    order = orders.get_order(order_id)
    return Response(content=resolver.qr_png(order), media_type="image/png")


def validation_error_handler(request: Request, exc: ValidationError):
    # Business rule failures are data, not transport errors
    return JSONResponse(status_code=status.HTTP_200_OK, content=failure(exc.message).model_dump())


def request_validation_handler(request: Request, exc: RequestValidationError):
    # Unparseable path, query or form values get the same reply as other bad input
    return JSONResponse(status_code=status.HTTP_200_OK, content=failure("Invalid inputs").model_dump())


def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=failure(exc.message).model_dump())


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="POS Backend",
        description="Point-of-sale API: orders, earnings and public receipts with role-based access control",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.gate = AuthorizationGate(settings)

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)

    logger.info(f"POS backend ready (database={engine.url.render_as_string(hide_password=True)})")
    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
