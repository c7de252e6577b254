# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase Order Routes

The acting user comes from the X-User-Id header (see with_acting_user).
Completing an order without one is rejected with 401.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import with_acting_user
from ..services import purchase_order_service
from .errors import SERVICE_ERRORS, service_error_response, unexpected_error_response


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _order_list(orders):
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})


@purchase_orders_bp.get("")
def list_purchase_orders_route():
    """
    List purchase orders, newest poid first.

    Query parameters:
    - status: pending, completed, cancelled
    - supplier_id: Filter by supplier
    - payment_status: unpaid, received, remitted
    - transaction_type: purchase, return, expense
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)

    Returns:
        {items: PurchaseOrder[], count: int, limit: int, offset: int}
    """
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset < 0:
        offset = 0

    try:
        orders, total = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id", type=int),
            payment_status=request.args.get("payment_status"),
            transaction_type=request.args.get("transaction_type"),
            limit=limit,
            offset=offset,
        )
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("list_purchase_orders")

    return jsonify({
        "items": [o.to_dict() for o in orders],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.get("/recent")
def recent_purchase_orders_route():
    limit = request.args.get("limit", 10, type=int)
    limit = min(max(limit, 1), 100)
    try:
        orders = purchase_order_service.list_recent(limit)
    except Exception:
        return unexpected_error_response("recent_purchase_orders")
    return _order_list(orders)


@purchase_orders_bp.get("/<int:order_id>")
def get_purchase_order_route(order_id: int):
    try:
        order = purchase_order_service.get_purchase_order(order_id)
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("get_purchase_order")
    return jsonify({"purchase_order": order.to_dict()})


@purchase_orders_bp.get("/supplier/<int:supplier_id>")
def purchase_orders_by_supplier_route(supplier_id: int):
    try:
        orders = purchase_order_service.list_by_supplier(supplier_id)
    except Exception:
        return unexpected_error_response("purchase_orders_by_supplier")
    return _order_list(orders)


@purchase_orders_bp.get("/product/<int:product_id>")
def purchase_orders_by_product_route(product_id: int):
    """Completed purchase orders containing the product, newest bill date first."""
    try:
        orders = purchase_order_service.list_by_product(product_id)
    except Exception:
        return unexpected_error_response("purchase_orders_by_product")
    return _order_list(orders)


@purchase_orders_bp.post("")
@with_acting_user
def create_purchase_order_route():
    """
    Create a purchase order.

    Request body:
    {
        "poid": "...",              // optional; blank generates a date-based number
        "supplier_name": "...",     // optional
        "supplier_id": 1,           // optional
        "bill_number": "...",       // optional
        "bill_date": "2024-01-01",  // optional
        "status": "pending",        // pending | completed | cancelled
        "payment_status": "unpaid", // unpaid | received | remitted
        "transaction_type": "purchase",
        "items": [
            {"code": "P001", "name": "...", "quantity": 10, "total_cost": "100.00"}
        ]
    }

    Returns:
        201: {purchase_order: {...}}
        400: Validation error
        401: Completed without X-User-Id
        409: poid already exists
    """
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    try:
        order = purchase_order_service.create_purchase_order(data, acting_user_id=g.acting_user_id)
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("create_purchase_order")

    return jsonify({"purchase_order": order.to_dict()}), 201


@purchase_orders_bp.put("/<int:order_id>")
@with_acting_user
def update_purchase_order_route(order_id: int):
    """
    Update a purchase order. Only keys present in the body change;
    "items" replaces all lines. An optional "version_id" guards against
    lost updates (409 when stale).
    """
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({"error": "Request body must be JSON"}), 400

    try:
        order = purchase_order_service.update_purchase_order(
            order_id, data, acting_user_id=g.acting_user_id
        )
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("update_purchase_order")

    return jsonify({"purchase_order": order.to_dict()})


@purchase_orders_bp.delete("/<int:order_id>")
def delete_purchase_order_route(order_id: int):
    try:
        purchase_order_service.delete_purchase_order(order_id)
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("delete_purchase_order")

    return jsonify({"deleted": True, "id": order_id})
