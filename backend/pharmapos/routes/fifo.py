# Overview: Flask API routes for FIFO cost previews and ledger listings.

from flask import Blueprint, request, jsonify

from ..services import fifo_service, inventory_service
from .errors import SERVICE_ERRORS, service_error_response, unexpected_error_response


fifo_bp = Blueprint("fifo", __name__, url_prefix="/api/fifo")


@fifo_bp.post("/simulate")
def simulate_fifo_route():
    """
    Preview the FIFO cost of a quantity before saving a line item.

    Request body:
    {
        "product_id": 1,
        "quantity": 12
    }

    Returns:
        200: FIFO match (cost_parts, total_cost, shortfall, has_negative_inventory, ...)
        400: Invalid quantity
        404: Unknown product
    """
    data = request.get_json(silent=True) or {}

    try:
        result = fifo_service.simulate(data.get("product_id"), data.get("quantity"))
    except SERVICE_ERRORS as e:
        return service_error_response(e)
    except Exception:
        return unexpected_error_response("simulate_fifo")

    return jsonify(result)


@fifo_bp.get("/product/<int:product_id>/batches")
def list_product_batches_route(product_id: int):
    """Inventory batches for a product in FIFO order, with quantity on hand."""
    try:
        batches = inventory_service.list_for_product(product_id)
        on_hand = inventory_service.get_quantity_on_hand(product_id)
    except Exception:
        return unexpected_error_response("list_product_batches")

    return jsonify({
        "items": [b.to_dict() for b in batches],
        "count": len(batches),
        "quantity_on_hand": on_hand,
    })
