"""Tests for the operator API."""
import sourcing.extensions as ext
from sourcing.models.audit_log import AuditLog
from sourcing.models.queue_item import QueueItem


def test_admin_rejects_missing_token(client):
    resp = client.get("/admin/queue")
    assert resp.status_code == 403


def test_admin_rejects_bad_token(client):
    resp = client.get("/admin/queue", headers={"X-Admin-Token": "wrong-token"})
    assert resp.status_code == 403


def test_enqueue_and_list(client, admin_headers, make_product):
    product = make_product()

    resp = client.post(
        "/admin/queue",
        json={"source_url": "https://x/good.jpg", "product_id": product.id},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    item = resp.get_json()["item"]
    assert item["status"] == "pending"
    assert item["attempts"] == 0

    resp = client.get("/admin/queue", headers=admin_headers)
    data = resp.get_json()
    assert [i["id"] for i in data["items"]] == [item["id"]]
    assert data["stats"]["pending"] == 1
    assert data["stats"]["total"] == 1

    log = AuditLog.query.filter_by(action="ENQUEUE").one()
    assert log.operator == "ops@example.test"


def test_enqueue_validates_input(client, admin_headers):
    bad_scheme = client.post(
        "/admin/queue", json={"source_url": "ftp://x/a.jpg"}, headers=admin_headers
    )
    assert bad_scheme.status_code == 400

    credentials = client.post(
        "/admin/queue", json={"source_url": "https://u:p@x/a.jpg"}, headers=admin_headers
    )
    assert credentials.status_code == 400

    nothing = client.post("/admin/queue", json={}, headers=admin_headers)
    assert nothing.status_code == 400

    missing_product = client.post(
        "/admin/queue", json={"source_url": "https://x/a.jpg", "product_id": 999},
        headers=admin_headers,
    )
    assert missing_product.status_code == 400


def test_run_queue_when_empty(client, admin_headers):
    resp = client.post("/admin/queue/run", headers=admin_headers)
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["total"] == 0
    assert data["message"] == "No items in queue"


def test_deferred_run_without_redis(client, admin_headers):
    resp = client.post("/admin/queue/run?defer=1", headers=admin_headers)
    assert resp.status_code == 503


def test_disabled_queue_keeps_configured_name(app):
    assert ext.task_queue.name == app.config["RQ_QUEUE_NAME"] == "image-sourcing"
    assert ext.task_queue.enqueue(test_disabled_queue_keeps_configured_name) is None


def test_run_scan_returns_counts(client, admin_headers):
    resp = client.post("/admin/scan/run", headers=admin_headers)
    assert resp.get_json() == {
        "success": True,
        "imagesAssigned": 0,
        "lowConfidenceFlagged": 0,
    }


def test_retry_failed_item(client, admin_headers, db):
    item = QueueItem(source_url="https://x/a.jpg", status="failed", attempts=3, error="boom")
    db.session.add(item)
    db.session.commit()

    resp = client.post(f"/admin/queue/{item.id}/retry", headers=admin_headers)

    assert resp.status_code == 200
    data = resp.get_json()["item"]
    assert (data["status"], data["attempts"], data["error"]) == ("pending", 0, None)


def test_retry_processing_item_conflicts(client, admin_headers, db):
    item = QueueItem(source_url="https://x/a.jpg", status="processing", attempts=1)
    db.session.add(item)
    db.session.commit()

    resp = client.post(f"/admin/queue/{item.id}/retry", headers=admin_headers)
    assert resp.status_code == 409


def test_retry_missing_item(client, admin_headers):
    resp = client.post("/admin/queue/999/retry", headers=admin_headers)
    assert resp.status_code == 404


def test_review_actions(client, admin_headers, make_product):
    product = make_product(images=["https://cdn/a.jpg"])

    resp = client.post(f"/admin/products/{product.id}/approve", headers=admin_headers)
    assert resp.get_json()["product"]["review_state"] == "approved"

    resp = client.post(f"/admin/products/{product.id}/reject", headers=admin_headers)
    data = resp.get_json()["product"]
    assert data["images"] == []
    assert data["image_confidence"] == "low"

    resp = client.post(f"/admin/products/{product.id}/approve", headers=admin_headers)
    assert resp.status_code == 409

    resp = client.post(f"/admin/products/{product.id}/rescrape", headers=admin_headers)
    assert resp.get_json()["product"]["image_review_notes"] == "Re-scrape requested"


def test_review_unknown_product(client, admin_headers):
    for action in ("approve", "reject", "rescrape"):
        resp = client.post(f"/admin/products/999/{action}", headers=admin_headers)
        assert resp.status_code == 404


def test_review_list_filters(client, admin_headers, make_product):
    make_product(title="Approved", images=["https://cdn/a.jpg"], image_approved=True)
    make_product(title="Pending", images=["https://cdn/b.jpg"])

    resp = client.get("/admin/review?needs_review=1", headers=admin_headers)
    titles = [p["title"] for p in resp.get_json()["products"]]
    assert titles == ["Pending"]

    resp = client.get("/admin/review", headers=admin_headers)
    assert len(resp.get_json()["products"]) == 2
