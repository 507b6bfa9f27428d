"""FastAPI application exposing price comparison queries and price alerts."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from functools import lru_cache

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import Engine

from pricecompare.db.session import create_engine_from_env, transaction_scope
from pricecompare.errors import InconsistentDataError, InvalidInputError, NotFoundError
from pricecompare.ingest.units import BaseUnit
from pricecompare.logic import alerts as alert_logic
from pricecompare.logic.basket import BasketItem, optimize_basket
from pricecompare.logic.discounts import best_active_discounts, newly_added_discounts
from pricecompare.logic.history import brand_trend, category_trend, product_history
from pricecompare.logic.value import products_with_value
from pricecompare.utils.dates import today_in_tz

logger = logging.getLogger(__name__)

app = FastAPI(title="Price Comparator API")


class ApiModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class BasketItemRequest(BaseModel):
    product_id: int
    quantity: Decimal = Field(default=Decimal(1), gt=0)


class BasketRequest(BaseModel):
    items: list[BasketItemRequest] = Field(min_length=1)
    as_of: date | None = None


class OfferModel(ApiModel):
    store_id: int
    store_name: str
    unit_price: Decimal
    cost: Decimal
    regular_unit_price: Decimal
    package_quantity: Decimal
    package_unit: str
    currency: str
    discount_percentage: int | None = None


class BasketLineModel(ApiModel):
    product_id: int
    product_name: str
    quantity: Decimal
    offer: OfferModel


class ShoppingListModel(ApiModel):
    store_id: int
    store_name: str
    items: list[BasketLineModel]
    subtotal: Decimal
    item_count: int


class UnfulfillableModel(ApiModel):
    product_id: int
    reason: str


class BasketResponse(ApiModel):
    as_of: date
    shopping_lists: list[ShoppingListModel]
    grand_total: Decimal
    baseline_total: Decimal
    potential_savings: Decimal
    unfulfillable: list[UnfulfillableModel]


class DiscountModel(ApiModel):
    discount_id: int
    product_id: int
    product_name: str
    brand_name: str
    store_id: int
    store_name: str
    percentage: int
    from_date: date
    to_date: date
    recorded_at_date: date
    package_quantity: Decimal
    package_unit: str
    original_price: Decimal
    discounted_price: Decimal
    currency: str


class ProductValueModel(ApiModel):
    product_id: int
    product_name: str
    brand_name: str
    category_name: str
    store_id: int | None
    store_name: str | None
    price: Decimal | None
    currency: str | None
    price_date: date | None
    package_quantity: Decimal | None
    package_unit: str | None
    price_per_unit: Decimal | None
    standard_unit: str | None
    normalizable: bool


class PricePointModel(ApiModel):
    entry_date: date
    store_id: int
    store_name: str
    price: Decimal
    currency: str
    package_quantity: Decimal
    package_unit: str


class TrendPointModel(ApiModel):
    day: date
    average_price_per_unit: Decimal
    observations: int


class AlertRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=100)
    product_id: int
    target_price: Decimal = Field(gt=0)
    store_id: int | None = None


class AlertModel(ApiModel):
    id: int
    user_id: str
    product_id: int
    store_id: int | None
    target_price: Decimal
    is_active: bool
    notified_at: datetime | None
    triggered_price: Decimal | None
    triggered_store_id: int | None
    created_at: datetime


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_engine_from_env()


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(InconsistentDataError)
async def inconsistent_data_handler(request: Request, exc: InconsistentDataError) -> JSONResponse:
    logger.error("Inconsistent data while serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal data inconsistency"})


@app.post("/basket/optimize", response_model=BasketResponse)
def basket_optimize(payload: BasketRequest, engine: Engine = Depends(get_engine)) -> BasketResponse:
    items = [BasketItem(product_id=item.product_id, quantity=item.quantity) for item in payload.items]
    with engine.connect() as conn:
        result = optimize_basket(conn, items, payload.as_of or today_in_tz())
    return BasketResponse.model_validate(result)


@app.get("/discounts/best", response_model=list[DiscountModel])
def discounts_best(
    as_of: date | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_engine),
) -> list[DiscountModel]:
    with engine.connect() as conn:
        listings = best_active_discounts(conn, as_of or today_in_tz())
    return [DiscountModel.model_validate(item) for item in listings[offset : offset + limit]]


@app.get("/discounts/new", response_model=list[DiscountModel])
def discounts_new(
    since: date | None = None,
    as_of: date | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_engine),
) -> list[DiscountModel]:
    as_of = as_of or today_in_tz()
    with engine.connect() as conn:
        listings = newly_added_discounts(conn, since or as_of - timedelta(days=1), as_of)
    return [DiscountModel.model_validate(item) for item in listings[offset : offset + limit]]


@app.get("/products/value", response_model=list[ProductValueModel])
def products_value(
    as_of: date | None = None,
    name: str | None = None,
    category_id: int | None = None,
    brand_id: int | None = None,
    store_id: int | None = None,
    sort: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    engine: Engine = Depends(get_engine),
) -> list[ProductValueModel]:
    with engine.connect() as conn:
        values = products_with_value(
            conn,
            as_of or today_in_tz(),
            name=name,
            category_id=category_id,
            brand_id=brand_id,
            store_id=store_id,
            sort=sort,
        )
    return [ProductValueModel.model_validate(value) for value in values[offset : offset + limit]]


@app.get("/products/{product_id}/history", response_model=list[PricePointModel])
def product_price_history(
    product_id: int,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    engine: Engine = Depends(get_engine),
) -> list[PricePointModel]:
    with engine.connect() as conn:
        points = product_history(conn, product_id, store_id=store_id, start=start, end=end)
    return [PricePointModel.model_validate(point) for point in points]


@app.get("/trends/categories/{category_id}", response_model=list[TrendPointModel])
def category_price_trend(
    category_id: int,
    base_unit: BaseUnit = BaseUnit.KG,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    engine: Engine = Depends(get_engine),
) -> list[TrendPointModel]:
    with engine.connect() as conn:
        points = category_trend(conn, category_id, base_unit, store_id=store_id, start=start, end=end)
    return [TrendPointModel.model_validate(point) for point in points]


@app.get("/trends/brands/{brand_id}", response_model=list[TrendPointModel])
def brand_price_trend(
    brand_id: int,
    base_unit: BaseUnit = BaseUnit.KG,
    store_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    engine: Engine = Depends(get_engine),
) -> list[TrendPointModel]:
    with engine.connect() as conn:
        points = brand_trend(conn, brand_id, base_unit, store_id=store_id, start=start, end=end)
    return [TrendPointModel.model_validate(point) for point in points]


@app.post("/alerts", response_model=AlertModel, status_code=status.HTTP_201_CREATED)
def alerts_create(payload: AlertRequest, engine: Engine = Depends(get_engine)) -> AlertModel:
    with transaction_scope(engine) as conn:
        alert = alert_logic.create_alert(
            conn, payload.user_id, payload.product_id, payload.target_price, store_id=payload.store_id
        )
    return AlertModel.model_validate(alert)


@app.get("/alerts", response_model=list[AlertModel])
def alerts_list(
    user_id: str = Query(..., min_length=1),
    active_only: bool = True,
    engine: Engine = Depends(get_engine),
) -> list[AlertModel]:
    with engine.connect() as conn:
        found = alert_logic.list_alerts(conn, user_id, active_only=active_only)
    return [AlertModel.model_validate(alert) for alert in found]


@app.delete("/alerts/{alert_id}", response_model=AlertModel)
def alerts_deactivate(
    alert_id: int,
    user_id: str = Query(..., min_length=1),
    engine: Engine = Depends(get_engine),
) -> AlertModel:
    with transaction_scope(engine) as conn:
        alert = alert_logic.deactivate_alert(conn, alert_id, user_id)
    return AlertModel.model_validate(alert)
