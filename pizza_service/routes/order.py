"""
Order endpoints: the menu, a diner's order history, placing orders and
the chaos switch for order creation.

Every route here passes through the chaos check.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from pizza_service.context import AppContext
from pizza_service.core.exceptions import ForbiddenError, UnauthorizedError
from pizza_service.routes.dependencies import check_chaos, get_auth_user, get_context, require_user
from pizza_service.schemas import (
    ChaosResponse,
    MenuItem,
    MenuItemCreate,
    OrderCreate,
    Role,
    User,
    UserOrders,
    is_role,
)
from pizza_service.services.metrics import LatencyMetric, PizzaMetric

logger = logging.getLogger(__name__)

ORDER_ENDPOINT = "/api/order"

router = APIRouter(prefix=ORDER_ENDPOINT, tags=["Order"], dependencies=[Depends(check_chaos)])

ENDPOINTS = [
    {
        "method": "GET",
        "path": "/api/order/menu",
        "description": "Get the pizza menu",
        "example": "curl localhost:3000/api/order/menu",
        "response": [{"id": 1, "title": "Veggie", "image": "pizza1.png", "price": 0.0038, "description": "A garden of delight"}],
    },
    {
        "method": "PUT",
        "path": "/api/order/menu",
        "requiresAuth": True,
        "description": "Add an item to the menu",
        "example": "curl -X PUT localhost:3000/api/order/menu -H 'Content-Type: application/json' -d '{ \"title\":\"Student\", \"description\": \"No topping, no sauce, just carbs\", \"image\":\"pizza9.png\", \"price\": 0.0001 }'  -H 'Authorization: Bearer tttttt'",
        "response": [{"id": 1, "title": "Student", "description": "No topping, no sauce, just carbs", "image": "pizza9.png", "price": 0.0001}],
    },
    {
        "method": "GET",
        "path": "/api/order",
        "requiresAuth": True,
        "description": "Get the orders for the authenticated user",
        "example": "curl -X GET localhost:3000/api/order  -H 'Authorization: Bearer tttttt'",
        "response": {
            "dinerId": 4,
            "orders": [{"id": 1, "franchiseId": 1, "storeId": 1, "date": "2024-06-05T05:14:40", "items": [{"id": 1, "menuId": 1, "description": "Veggie", "price": 0.05}]}],
            "page": 1,
        },
    },
    {
        "method": "POST",
        "path": "/api/order",
        "requiresAuth": True,
        "description": "Create a order for the authenticated user",
        "example": "curl -X POST localhost:3000/api/order -H 'Content-Type: application/json' -d '{\"franchiseId\": 1, \"storeId\":1, \"items\":[{ \"menuId\": 1, \"description\": \"Veggie\", \"price\": 0.05 }]}'  -H 'Authorization: Bearer tttttt'",
        "response": {
            "order": {"franchiseId": 1, "storeId": 1, "items": [{"menuId": 1, "description": "Veggie", "price": 0.05}], "id": 1},
            "jwt": "1111111111",
        },
    },
    {
        "method": "PUT",
        "path": "/api/order/chaos/:state",
        "requiresAuth": True,
        "description": "Turn random order failures on or off (admin only)",
        "example": "curl -X PUT localhost:3000/api/order/chaos/true -H 'Authorization: Bearer tttttt'",
        "response": {"chaos": True},
    },
]


@router.get("/menu", response_model=list[MenuItem])
async def get_menu(context: AppContext = Depends(get_context)) -> list[MenuItem]:
    return await context.dao.get_menu()


@router.put("/menu", response_model=list[MenuItem])
async def add_menu_item(
    item: MenuItemCreate,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> list[MenuItem]:
    if not is_role(user.roles, Role.ADMIN):
        raise ForbiddenError("unable to add menu item")
    await context.dao.add_menu_item(item)
    return await context.dao.get_menu()


@router.get("", response_model=UserOrders, response_model_exclude_none=True)
async def get_orders(
    page: int = Query(1, ge=1),
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> UserOrders:
    return await context.dao.get_orders(user, page)


@router.put("/chaos/{state}", response_model=ChaosResponse)
async def set_chaos(
    state: str,
    user: Optional[User] = Depends(get_auth_user),
    context: AppContext = Depends(get_context),
) -> ChaosResponse:
    if user is None or not is_role(user.roles, Role.ADMIN):
        raise UnauthorizedError("Unauthorized")
    chaos = state == "true"
    context.chaos.set_chaos(ORDER_ENDPOINT, chaos, method="POST")
    return ChaosResponse(chaos=chaos)


@router.post("")
async def create_order(
    order_request: OrderCreate,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
) -> JSONResponse:
    start = time.monotonic()

    order = await context.dao.add_diner_order(user, order_request)
    result = await context.factory.create_order(user, order)
    items = len(order.items)

    if result.success:
        context.metrics.pizza.add(PizzaMetric.SOLD, items)
        context.metrics.pizza.add(PizzaMetric.REVENUE, sum(item.price for item in order.items))
        logger.info(
            "Pizza factory created pizza(s)",
            extra={"log_type": "factory", "payload": {
                "response": result.response,
                "responseTimeMs": round(result.response_time_ms, 2),
            }},
        )
        response = JSONResponse(content={
            "order": order.to_json(),
            "reportSlowPizzaToFactoryUrl": result.report_url,
            "jwt": result.jwt,
        })
    else:
        context.metrics.pizza.add(PizzaMetric.CREATION_FAILURE, items)
        logger.error(
            "Pizza factory error",
            extra={"log_type": "factory", "payload": {
                "response": result.response,
                "error": result.error_message,
                "responseTimeMs": round(result.response_time_ms, 2),
            }},
        )
        response = JSONResponse(status_code=500, content={
            "message": "Failed to fulfill order at factory",
            "reportPizzaCreationErrorToPizzaFactoryUrl": result.report_url,
        })

    context.metrics.latency.add(LatencyMetric.PIZZA_CREATION, (time.monotonic() - start) * 1000)
    return response
