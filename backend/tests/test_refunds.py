"""
Refund requests (buyer) and refund bookkeeping (admin). Neither moves the
order status.
"""

import pytest

from marketplace.services import order_service, refund_service
from marketplace.services.order_service import OrderNotFoundError, OrderTransitionError
from marketplace.services.refund_service import RefundRequestError

from conftest import headers_for


VALID_REQUEST = {
    "reason": "item_destroyed",
    "description": "The box arrived crushed and the dress was torn along the hem.",
    "payout_name": "Hanna Buyer",
    "payout_email": "hanna.pay@example.com",
}


@pytest.fixture
def delivered_order(buyer, seller, admin, make_product, place_order):
    order = place_order(buyer, make_product(seller))
    order_service.verify_payment(order.id, admin=admin)
    order_service.ship_order(order.id, seller=seller, tracking_number="1Z")
    order_service.mark_delivered(order.id, actor=buyer)
    return order


class TestRefundRequestValidation:
    @pytest.mark.parametrize("patch,message", [
        ({"reason": "changed_mind"}, "reason must be one of"),
        ({"description": "too short"}, "description must be at least 20 characters"),
        ({"payout_name": ""}, "payout_name is required"),
        ({"payout_email": None}, "payout_email or payout_phone is required"),
        ({"payout_email": "not-an-email"}, "payout_email is not a valid email"),
    ])
    def test_rejects_bad_payloads(self, patch, message):
        payload = dict(VALID_REQUEST, **patch)

        with pytest.raises(RefundRequestError) as excinfo:
            refund_service.validate_refund_request(payload)

        assert message in str(excinfo.value)

    def test_phone_alone_is_enough(self):
        payload = dict(VALID_REQUEST, payout_email=None, payout_phone="415-555-0123")

        data = refund_service.validate_refund_request(payload)

        assert data["payout_phone"] == "415-555-0123"
        assert data["payout_email"] is None


class TestRefundFlow:
    def test_request_on_delivered_order(self, delivered_order, buyer):
        order = refund_service.request_refund(delivered_order.id, buyer=buyer, payload=VALID_REQUEST)

        assert order.status == "delivered"
        assert order.refund_requested is True
        assert order.refund_request_reason == "item_destroyed"
        assert order.refund_requested_at is not None
        assert refund_service.can_request_refund(order) is False
        assert refund_service.can_mark_refunded(order) is True

    def test_only_once(self, delivered_order, buyer):
        refund_service.request_refund(delivered_order.id, buyer=buyer, payload=VALID_REQUEST)

        with pytest.raises(OrderTransitionError):
            refund_service.request_refund(delivered_order.id, buyer=buyer, payload=VALID_REQUEST)

    def test_not_before_delivery(self, buyer, seller, make_product, place_order):
        order = place_order(buyer, make_product(seller))

        with pytest.raises(OrderTransitionError):
            refund_service.request_refund(order.id, buyer=buyer, payload=VALID_REQUEST)

    def test_only_the_buyer(self, delivered_order, seller, admin):
        with pytest.raises(OrderNotFoundError):
            refund_service.request_refund(delivered_order.id, buyer=seller, payload=VALID_REQUEST)
        with pytest.raises(OrderNotFoundError):
            refund_service.request_refund(delivered_order.id, buyer=admin, payload=VALID_REQUEST)

    def test_mark_refunded_after_request(self, delivered_order, buyer, admin):
        refund_service.request_refund(delivered_order.id, buyer=buyer, payload=VALID_REQUEST)

        order = refund_service.mark_refunded(delivered_order.id, admin=admin, notes="Sent via Zelle")

        assert order.status == "delivered"
        assert order.is_refunded is True
        assert order.refund_notes == "Sent via Zelle"

        with pytest.raises(OrderTransitionError):
            refund_service.mark_refunded(delivered_order.id, admin=admin)

    def test_mark_refunded_needs_request_when_delivered(self, delivered_order, admin):
        with pytest.raises(OrderTransitionError):
            refund_service.mark_refunded(delivered_order.id, admin=admin)

    def test_mark_refunded_on_cancelled_order(self, buyer, seller, admin, make_product, place_order):
        order = place_order(buyer, make_product(seller))
        order_service.reject_payment(order.id, admin=admin, reason="Screenshot unreadable")

        order = refund_service.mark_refunded(order.id, admin=admin)

        assert (order.status, order.payment_status) == ("cancelled", "rejected")
        assert order.refunded_at is not None

    def test_refund_queue(self, delivered_order, buyer, admin):
        assert refund_service.list_refund_requests() == []

        refund_service.request_refund(delivered_order.id, buyer=buyer, payload=VALID_REQUEST)
        assert [o.id for o in refund_service.list_refund_requests()] == [delivered_order.id]

        refund_service.mark_refunded(delivered_order.id, admin=admin)
        assert refund_service.list_refund_requests() == []
        assert len(refund_service.list_refund_requests(include_refunded=True)) == 1


class TestRefundRoutes:
    def test_request_and_mark_over_http(self, client, delivered_order, buyer, admin):
        response = client.post(
            f'/api/orders/{delivered_order.id}/refund-request', json=VALID_REQUEST, headers=headers_for(buyer)
        )
        assert response.status_code == 200
        assert response.json["order"]["refund_requested"] is True

        response = client.get('/api/admin/refund-requests', headers=headers_for(admin))
        assert [o["id"] for o in response.json["items"]] == [delivered_order.id]

        response = client.post(
            f'/api/orders/{delivered_order.id}/mark-refunded', json={"notes": "done"}, headers=headers_for(admin)
        )
        assert response.status_code == 200
        assert response.json["order"]["is_refunded"] is True
        assert response.json["order"]["status"] == "delivered"

    def test_invalid_request_is_400(self, client, delivered_order, buyer):
        response = client.post(
            f'/api/orders/{delivered_order.id}/refund-request',
            json=dict(VALID_REQUEST, description="short"),
            headers=headers_for(buyer),
        )

        assert response.status_code == 400

    def test_buyer_cannot_mark_refunded(self, client, delivered_order, buyer):
        response = client.post(f'/api/orders/{delivered_order.id}/mark-refunded', headers=headers_for(buyer))

        assert response.status_code == 403
