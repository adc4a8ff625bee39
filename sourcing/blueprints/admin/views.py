"""Operator API used by the image queue and image review screens."""
import hmac
from flask import request, current_app, abort
from sourcing import extensions
from sourcing.blueprints.admin import admin_bp
from sourcing.services import product_service, queue_service, review_service
from sourcing.workers.bulk_scanner import run_bulk_scan, scan_images_job
from sourcing.workers.queue_processor import run_queue_batch, process_queue_job


@admin_bp.before_request
def require_admin_token():
    """X-Admin-Token header must match ADMIN_API_TOKEN."""
    expected = current_app.config["ADMIN_API_TOKEN"]
    token = request.headers.get("X-Admin-Token", "")
    if not expected or not hmac.compare_digest(token, expected):
        return {"success": False, "error": "Forbidden"}, 403
    return None


def _operator():
    return request.headers.get("X-Operator-Id") or None


def _wants_defer():
    return request.args.get("defer", "").lower() in ("1", "true", "yes")


def _defer(job_func):
    job = extensions.task_queue.enqueue(job_func)
    if job is None:
        return {"success": False, "error": "Job queue not available"}, 503
    return {"success": True, "job_id": job.id}, 202


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------

@admin_bp.route("/queue", methods=["POST"])
def enqueue():
    payload = request.get_json(silent=True) or {}
    product_id = payload.get("product_id")
    try:
        if product_id is not None:
            product_id = int(product_id)
        item = queue_service.enqueue_source_request(
            payload.get("source_url", ""), product_id=product_id, operator=_operator()
        )
    except (TypeError, ValueError) as e:
        return {"success": False, "error": str(e)}, 400
    return {"success": True, "item": item.to_dict()}, 201


@admin_bp.route("/queue", methods=["GET"])
def list_queue():
    status = request.args.get("status")
    limit = min(request.args.get("limit", 100, type=int), 500)
    items = queue_service.list_items(status=status, limit=limit)
    return {
        "items": [item.to_dict() for item in items],
        "stats": queue_service.queue_stats(),
    }


@admin_bp.route("/queue/run", methods=["POST"])
def run_queue():
    if _wants_defer():
        return _defer(process_queue_job)
    result = run_queue_batch()
    if not result["total"]:
        return {"success": True, **result, "message": "No items in queue"}
    return {"success": True, **result}


@admin_bp.route("/queue/<int:item_id>/retry", methods=["POST"])
def retry_queue_item(item_id):
    try:
        item = queue_service.retry_item(item_id, operator=_operator())
    except ValueError as e:
        return {"success": False, "error": str(e)}, 409
    if item is None:
        abort(404)
    return {"success": True, "item": item.to_dict()}


# ---------------------------------------------------------------------------
# Bulk scan
# ---------------------------------------------------------------------------

@admin_bp.route("/scan/run", methods=["POST"])
def run_scan():
    if _wants_defer():
        return _defer(scan_images_job)
    return {"success": True, **run_bulk_scan()}


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

@admin_bp.route("/review", methods=["GET"])
def review_list():
    needs_review = request.args.get("needs_review", "").lower() in ("1", "true", "yes")
    products = product_service.get_review_list(needs_review=needs_review)
    return {"products": [p.to_dict() for p in products]}


@admin_bp.route("/products/<int:product_id>/approve", methods=["POST"])
def approve(product_id):
    try:
        product = review_service.approve(product_id, operator=_operator())
    except ValueError as e:
        return {"success": False, "error": str(e)}, 409
    if product is None:
        return {"success": False, "error": "Product not found"}, 404
    return {"success": True, "product": product.to_dict()}


@admin_bp.route("/products/<int:product_id>/reject", methods=["POST"])
def reject(product_id):
    product = review_service.reject(product_id, operator=_operator())
    if product is None:
        return {"success": False, "error": "Product not found"}, 404
    return {"success": True, "product": product.to_dict()}


@admin_bp.route("/products/<int:product_id>/rescrape", methods=["POST"])
def rescrape(product_id):
    product = review_service.request_rescrape(product_id, operator=_operator())
    if product is None:
        return {"success": False, "error": "Product not found"}, 404
    return {
        "success": True,
        "message": "Re-scrape triggered. Product will be processed on next run.",
        "product": product.to_dict(),
    }
