from __future__ import annotations

import uuid

from conftest import MEMBER_ID, bearer, make_token


API_DRAFT = {
    "name": "Weather feed",
    "category": "climate",
    "dataSourceType": "api",
    "apiEndpoint": "https://example.com/wx",
}


async def _create(client, admin_headers, **overrides) -> dict:
    response = await client.post("/admin/datasets", json={**API_DRAFT, **overrides}, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_admin_routes_require_bearer_token(client) -> None:
    response = await client.get("/admin/datasets")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Missing authentication credentials"}


async def test_admin_routes_reject_invalid_token(client) -> None:
    response = await client.get("/admin/datasets", headers=bearer("not-a-jwt"))
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_admin_routes_reject_non_admin(client, member_headers) -> None:
    response = await client.get("/admin/datasets", headers=member_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Admin access required"


async def test_create_and_get_dataset(client, admin_headers) -> None:
    created = await _create(client, admin_headers)

    assert created["isActive"] is True
    assert created["isPublic"] is False
    assert created["isDiscoverable"] is False
    assert created["dataSourceType"] == "api"
    assert created["config"] == {
        "dataSourceType": "api",
        "apiEndpoint": "https://example.com/wx",
        "apiMethod": "GET",
    }

    response = await client.get(f"/admin/datasets/{created['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Weather feed"


async def test_create_without_endpoint_is_400(client, admin_headers) -> None:
    response = await client.post(
        "/admin/datasets", json={**API_DRAFT, "apiEndpoint": ""}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "apiEndpoint is required",
        "field": "apiEndpoint",
    }


async def test_create_with_bad_body_is_400(client, admin_headers) -> None:
    response = await client.post(
        "/admin/datasets", json={**API_DRAFT, "price": -1}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["field"] == "price"


async def test_create_with_malformed_headers_warns(client, admin_headers) -> None:
    response = await client.post(
        "/admin/datasets", json={**API_DRAFT, "apiHeaders": "{oops"}, headers=admin_headers
    )
    assert response.status_code == 201
    body = response.json()
    assert body["warnings"] == ["MalformedHeaders"]
    assert body["data"]["config"]["apiHeaders"] == "{oops"


async def test_create_company_intelligence(client, admin_headers) -> None:
    created = await _create(
        client, admin_headers, dataSourceType="company-intelligence", apiEndpoint="https://other"
    )
    assert created["dataSourceType"] == "company"
    assert created["config"]["apiEndpoint"] == "/api/companies"
    assert created["config"]["apiMethod"] == "GET"


async def test_get_unknown_dataset_is_404(client, admin_headers) -> None:
    response = await client.get(f"/admin/datasets/{uuid.uuid4()}", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Dataset not found"}


async def test_update_switches_source_type(client, admin_headers) -> None:
    created = await _create(client, admin_headers)
    response = await client.put(
        f"/admin/datasets/{created['id']}",
        json={"dataSourceType": "folder", "folderPath": "/data/wx"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["dataSourceType"] == "folder"
    assert data["config"] == {"dataSourceType": "folder", "folderPath": "/data/wx"}


async def test_toggle_public_through_update(client, admin_headers) -> None:
    created = await _create(client, admin_headers)
    response = await client.put(
        f"/admin/datasets/{created['id']}", json={"isPublic": True}, headers=admin_headers
    )
    assert response.json()["data"]["isPublic"] is True
    assert response.json()["data"]["isDiscoverable"] is True


async def test_toggle_routes(client, admin_headers) -> None:
    created = await _create(client, admin_headers)
    base = f"/admin/datasets/{created['id']}"

    featured = await client.put(f"{base}/toggle-featured", headers=admin_headers)
    assert featured.json()["data"]["featured"] is True

    inactive = await client.put(f"{base}/toggle-active", headers=admin_headers)
    assert inactive.json()["data"]["isActive"] is False
    assert inactive.json()["message"] == "Dataset deactivated successfully"

    active = await client.put(f"{base}/toggle-active", headers=admin_headers)
    assert active.json()["data"]["isActive"] is True

    public = await client.put(f"{base}/toggle-public", headers=admin_headers)
    assert public.json()["data"]["isPublic"] is True


async def test_format_and_feature_routes(client, admin_headers) -> None:
    created = await _create(client, admin_headers)
    base = f"/admin/datasets/{created['id']}"

    await client.post(f"{base}/formats", json={"value": "CSV"}, headers=admin_headers)
    response = await client.post(f"{base}/formats", json={"value": "JSON"}, headers=admin_headers)
    assert response.json()["data"]["formats"] == ["CSV", "JSON"]

    response = await client.delete(f"{base}/formats/0", headers=admin_headers)
    assert response.json()["data"]["formats"] == ["JSON"]

    response = await client.delete(f"{base}/formats/9", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["formats"] == ["JSON"]

    response = await client.post(f"{base}/features", json={"value": " "}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.post(f"{base}/features", json={"value": "Hourly"}, headers=admin_headers)
    assert response.json()["data"]["features"] == ["Hourly"]
    response = await client.delete(f"{base}/features/0", headers=admin_headers)
    assert response.json()["data"]["features"] == []


async def test_delete_dataset(client, admin_headers) -> None:
    created = await _create(client, admin_headers)
    response = await client.delete(f"/admin/datasets/{created['id']}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.get(f"/admin/datasets/{created['id']}", headers=admin_headers)
    assert response.status_code == 404


async def test_list_includes_every_visibility_state(client, admin_headers) -> None:
    await _create(client, admin_headers, name="hidden")
    await _create(client, admin_headers, name="public", isPublic=True)

    response = await client.get("/admin/datasets", headers=admin_headers)
    assert {item["name"] for item in response.json()["data"]} == {"hidden", "public"}


async def test_public_listing_only_shows_discoverable(client, admin_headers) -> None:
    await _create(client, admin_headers, name="hidden")
    await _create(client, admin_headers, name="public", isPublic=True)
    await _create(client, admin_headers, name="paused", isPublic=True, isActive=False)

    response = await client.get("/datasets")
    assert response.status_code == 200
    assert [item["name"] for item in response.json()["data"]] == ["public"]


async def test_expired_token_is_rejected(client) -> None:
    token = make_token(MEMBER_ID, role="admin", exp=1)
    response = await client.get("/admin/datasets", headers=bearer(token))
    assert response.status_code == 401
    assert response.json()["error"] == "Token has expired"
