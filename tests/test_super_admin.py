"""Super-admin API tests: tenant provisioning, usage and impersonation."""

import httpx
from sqlalchemy import select

from conftest import PASSWORD, admin_headers, make_user, tenant_headers
from voicedesk.auth.security import verify_token
from voicedesk.models import AdminAuditLog, Tenant

NEW_TENANT = {
    "name": "Initech",
    "slug": "initech",
    "admin_name": "Bill",
    "admin_email": "bill@initech.io",
    "admin_password": PASSWORD,
    "plan": "pro",
}


async def test_super_admin_login(client, super_admin):
    response = await client.post(
        "/api/super-admin/login", json={"email": "root@voicedesk.io", "password": PASSWORD}
    )
    assert response.status_code == 200
    token = response.json()["token"]
    assert verify_token(token).subject_type == "super_admin"

    me = await client.get("/api/super-admin/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["admin"]["email"] == "root@voicedesk.io"


async def test_tenant_token_cannot_reach_super_admin_routes(client, tenant, tenant_admin):
    response = await client.get("/api/super-admin/tenants", headers=tenant_headers(tenant_admin))
    assert response.status_code == 401
    assert response.json()["message"] == "Super admin access required"


async def test_create_tenant_provisions_sub_account(client, provider_api, super_admin):
    route = provider_api.post("/sub-accounts/create").mock(
        return_value=httpx.Response(200, json={"sub_account_id": "sub-initech"})
    )
    response = await client.post(
        "/api/super-admin/tenants", json=NEW_TENANT, headers=admin_headers(super_admin)
    )
    assert response.status_code == 201
    data = response.json()
    assert data["tenant"]["bolna_sub_account_id"] == "sub-initech"
    assert data["tenant"]["plan"] == "pro"
    assert data["admin"]["role"] == "admin"
    assert data["admin"]["email"] == "bill@initech.io"
    assert route.call_count == 1

    login = await client.post(
        "/api/tenants/initech/login", json={"email": "bill@initech.io", "password": PASSWORD}
    )
    assert login.status_code == 200


async def test_create_tenant_with_restricted_provider_uses_placeholder(
    client, provider_api, db, super_admin
):
    """A 403 from sub-account creation yields a pending placeholder tenant."""
    provider_api.post("/sub-accounts/create").mock(
        return_value=httpx.Response(
            403, json={"message": "Sub-accounts are not available on your plan"}
        )
    )
    response = await client.post(
        "/api/super-admin/tenants", json=NEW_TENANT, headers=admin_headers(super_admin)
    )
    assert response.status_code == 201
    tenant = response.json()["tenant"]
    assert tenant["bolna_sub_account_id"].startswith("internal-initech-")
    assert tenant["settings"]["pending_subaccount"] is True
    assert "not available" in tenant["settings"]["pending_reason"]


async def test_create_tenant_links_existing_sub_account(client, provider_api, super_admin):
    route = provider_api.post("/sub-accounts/create").mock(
        return_value=httpx.Response(200, json={"sub_account_id": "unused"})
    )
    body = {**NEW_TENANT, "sub_account_id": "sub-existing"}
    response = await client.post(
        "/api/super-admin/tenants", json=body, headers=admin_headers(super_admin)
    )
    assert response.status_code == 201
    assert response.json()["tenant"]["bolna_sub_account_id"] == "sub-existing"
    assert route.call_count == 0


async def test_duplicate_slug_is_conflict(client, tenant, super_admin):
    body = {**NEW_TENANT, "slug": "acme", "sub_account_id": "sub-other"}
    response = await client.post(
        "/api/super-admin/tenants", json=body, headers=admin_headers(super_admin)
    )
    assert response.status_code == 409
    assert response.json()["message"] == "Tenant slug already exists"


async def test_taken_sub_account_is_conflict(client, tenant, super_admin):
    body = {**NEW_TENANT, "sub_account_id": "sub-acme"}
    response = await client.post(
        "/api/super-admin/tenants", json=body, headers=admin_headers(super_admin)
    )
    assert response.status_code == 409


async def test_invalid_slug_is_400(client, super_admin):
    body = {**NEW_TENANT, "slug": "Not Valid"}
    response = await client.post(
        "/api/super-admin/tenants", json=body, headers=admin_headers(super_admin)
    )
    assert response.status_code == 400
    assert "slug" in response.json()["message"]


async def test_tenant_detail_reports_usage(client, db, tenant, tenant_admin, super_admin):
    await make_user(db, tenant, "rep@acme.io", role="agent")
    response = await client.get(
        f"/api/super-admin/tenants/{tenant.id}", headers=admin_headers(super_admin)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["usage"]["users"] == {"current": 2, "limit": 3}
    assert data["usage"]["agents"]["current"] == 0
    assert data["planLimits"]["maxCampaigns"] == 2


async def test_linking_sub_account_clears_pending_flags(client, db, super_admin):
    tenant = Tenant(
        name="Pending",
        slug="pending",
        bolna_sub_account_id="internal-pending-1",
        plan="starter",
        status="active",
        settings={"pending_subaccount": True, "pending_reason": "restricted", "theme": "dark"},
    )
    db.add(tenant)
    await db.commit()

    response = await client.patch(
        f"/api/super-admin/tenants/{tenant.id}",
        json={"sub_account_id": "sub-real", "plan": "enterprise"},
        headers=admin_headers(super_admin),
    )
    assert response.status_code == 200
    updated = response.json()["tenant"]
    assert updated["bolna_sub_account_id"] == "sub-real"
    assert updated["plan"] == "enterprise"
    assert updated["settings"] == {"theme": "dark"}


async def test_impersonation_is_audited(client, db, tenant, tenant_admin, super_admin):
    response = await client.post(
        f"/api/super-admin/tenants/{tenant.id}/impersonate", headers=admin_headers(super_admin)
    )
    assert response.status_code == 200
    data = response.json()
    payload = verify_token(data["token"])
    assert payload.impersonation is True
    assert payload.impersonator_id == super_admin.id
    assert payload.subject_id == tenant_admin.id
    assert data["tenant"]["slug"] == "acme"

    result = await db.execute(
        select(AdminAuditLog).where(AdminAuditLog.action == "impersonation_start")
    )
    entry = result.scalar_one()
    assert entry.impersonator_id == super_admin.id
    assert entry.tenant_id == tenant.id

    # The impersonation token works on tenant routes
    phones = await client.get(
        "/api/tenant/phone-numbers", headers={"Authorization": f"Bearer {data['token']}"}
    )
    assert phones.status_code == 200


async def test_impersonation_needs_active_admin(client, db, tenant, super_admin):
    await make_user(db, tenant, "rep@acme.io", role="agent")
    response = await client.post(
        f"/api/super-admin/tenants/{tenant.id}/impersonate", headers=admin_headers(super_admin)
    )
    assert response.status_code == 404
    assert response.json()["message"] == "No active admin user for tenant"


async def test_stop_impersonation(client, super_admin):
    response = await client.post(
        "/api/super-admin/impersonation/stop",
        json={"tenant_id": 1, "admin_id": 1},
        headers=admin_headers(super_admin),
    )
    assert response.status_code == 200
    assert response.json() == {"ok": True}
