import pytest

from storefront.middleware.maintenance import is_exempt, is_public
from storefront.services.settings import SETTINGS_PATH


def maintenance_on(backend):
    backend.on("GET", SETTINGS_PATH, (200, {"success": True, "data": {"maintenance_mode": "true"}}))


@pytest.mark.parametrize("path", ["/admin/orders", "/api/settings", "/static/app.css", "/_next/x", "/favicon.ico"])
def test_exempt_paths(path):
    assert is_exempt(path)


@pytest.mark.parametrize("path", ["/maintenance", "/login", "/blog/post-1", "/privacy-policy"])
def test_public_paths(path):
    assert is_public(path)
    assert not is_exempt(path)


def test_shop_is_open_when_flag_off(api, backend):
    backend.on("GET", SETTINGS_PATH, (200, {"success": True, "data": {"maintenance_mode": "false"}}))
    response = api.get("/shop/categories", follow_redirects=False)
    assert response.status_code == 200


def test_shop_redirects_during_maintenance(api, backend):
    maintenance_on(backend)
    response = api.get("/shop/products", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/maintenance"


def test_public_and_api_paths_pass_during_maintenance(api, backend):
    maintenance_on(backend)
    assert api.get("/maintenance", follow_redirects=False).status_code == 200
    check = api.get("/api/check-maintenance", follow_redirects=False)
    assert check.status_code == 200
    assert check.json() == {"maintenanceMode": True}


def test_admin_is_never_gated(api, backend, admin_headers):
    maintenance_on(backend)
    response = api.get("/admin/categories", headers=admin_headers, follow_redirects=False)
    assert response.status_code == 200


def test_flag_lookup_failure_lets_request_through(api, backend):
    backend.on("GET", SETTINGS_PATH, (500, {"message": "down"}))
    response = api.get("/shop/brands", follow_redirects=False)
    assert response.status_code == 200


def test_json_writes_get_503_during_maintenance(api, backend):
    maintenance_on(backend)
    response = api.post("/cart/items", json={"product_id": 1}, headers={"X-Cart-Session": "s1"},
                        follow_redirects=False)
    assert response.status_code == 503
    assert response.json()["maintenanceMode"] is True
    assert response.headers["retry-after"] == "300"
