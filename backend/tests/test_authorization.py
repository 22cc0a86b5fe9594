"""
Role gates on every protected endpoint.
"""

import pytest

from conftest import headers_for


PROTECTED = [
    ("get", "/api/auth/me"),
    ("get", "/api/orders"),
    ("get", "/api/orders/1"),
    ("post", "/api/checkout"),
    ("get", "/api/favorites"),
    ("get", "/api/dashboard/badges"),
    ("get", "/api/products/mine"),
    ("post", "/api/products"),
    ("get", "/api/admin/products"),
    ("get", "/api/admin/settings"),
    ("post", "/api/send-email"),
]

ADMIN_ONLY = [
    ("get", "/api/admin/products"),
    ("post", "/api/admin/products/1/approve"),
    ("post", "/api/admin/products/1/reject"),
    ("get", "/api/admin/designers"),
    ("put", "/api/admin/designers"),
    ("delete", "/api/admin/designers"),
    ("get", "/api/admin/orders"),
    ("get", "/api/admin/refund-requests"),
    ("get", "/api/admin/settings"),
    ("put", "/api/admin/settings"),
    ("post", "/api/orders/1/verify-payment"),
    ("post", "/api/orders/1/reject-payment"),
    ("post", "/api/orders/1/mark-refunded"),
    ("post", "/api/send-email"),
]

SELLER_ONLY = [
    ("get", "/api/products/mine"),
    ("post", "/api/products"),
    ("put", "/api/products/1"),
    ("delete", "/api/products/1"),
    ("post", "/api/orders/1/process"),
    ("post", "/api/orders/1/ship"),
    ("post", "/api/orders/1/decline"),
]


@pytest.mark.parametrize("method,path", PROTECTED)
def test_requires_token(client, method, path):
    response = getattr(client, method)(path)

    assert response.status_code == 401
    assert response.json["error"] == "Authentication required"


def test_garbage_token(client):
    response = client.get('/api/auth/me', headers={"Authorization": "Bearer not-a-real-token"})

    assert response.status_code == 401
    assert response.json["error"] == "Invalid or expired token"


@pytest.mark.parametrize("method,path", ADMIN_ONLY)
@pytest.mark.parametrize("role_fixture", ["buyer", "seller"])
def test_admin_only(client, request, role_fixture, method, path):
    profile = request.getfixturevalue(role_fixture)

    response = getattr(client, method)(path, json={}, headers=headers_for(profile))

    assert response.status_code == 403
    assert response.json["required_roles"] == ["admin"]


@pytest.mark.parametrize("method,path", SELLER_ONLY)
@pytest.mark.parametrize("role_fixture", ["buyer", "admin"])
def test_seller_only(client, request, role_fixture, method, path):
    profile = request.getfixturevalue(role_fixture)

    response = getattr(client, method)(path, json={}, headers=headers_for(profile))

    assert response.status_code == 403


def test_public_endpoints(client):
    assert client.get('/api/products').status_code == 200
    assert client.get('/api/products/tags').status_code == 200
    assert client.get('/api/products/designers').status_code == 200
    assert client.get('/api/cart').status_code == 200
    assert client.get('/api/checkout/payment-info').status_code == 200
