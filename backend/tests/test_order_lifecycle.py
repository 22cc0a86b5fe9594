"""
Order state machine: who may do what, from which state, and the side
effects of each transition.
"""

import pytest

from marketplace.extensions import db
from marketplace.models import Product
from marketplace.services import cart_service, order_service, products_service
from marketplace.services.cart_service import Cart
from marketplace.services.order_service import OrderNotFoundError, OrderTransitionError

from conftest import headers_for


@pytest.fixture
def order(buyer, seller, make_product, place_order):
    product = make_product(seller, quantity_available=2)
    return place_order(buyer, product)


def subjects(emails):
    return [email["subject"] for email in emails]


class TestTransitionsService:
    def test_happy_path(self, order, admin, seller, buyer):
        order_service.verify_payment(order.id, admin=admin)
        assert (order.status, order.payment_status) == ("payment_verified", "verified")
        assert order.payment_verified_at is not None

        order_service.start_processing(order.id, seller=seller)
        assert order.status == "processing"

        order_service.ship_order(order.id, seller=seller, tracking_number=" 1Z999 ")
        assert order.status == "shipped"
        assert order.tracking_number == "1Z999"
        assert order.shipped_at is not None

        order_service.mark_delivered(order.id, actor=buyer)
        assert order.status == "delivered"
        assert order.delivered_at is not None

    def test_ship_straight_from_verified(self, order, admin, seller):
        order_service.verify_payment(order.id, admin=admin)

        order_service.ship_order(order.id, seller=seller, tracking_number="TRK1")

        assert order.status == "shipped"

    def test_verify_deactivates_products(self, order, admin):
        product_id = order.items[0].product_id

        order_service.verify_payment(order.id, admin=admin)

        db.session.expire_all()
        assert db.session.get(Product, product_id).is_active is False

    def test_reject_payment_cancels(self, order, admin, sent_emails):
        product = db.session.get(Product, order.items[0].product_id)
        stock_before = (product.is_active, product.quantity_available)

        order_service.reject_payment(order.id, admin=admin)

        assert (order.status, order.payment_status) == ("cancelled", "rejected")
        assert order.cancellation_reason == "Payment could not be verified"
        assert order.cancelled_at is not None
        db.session.refresh(product)
        assert (product.is_active, product.quantity_available) == stock_before
        assert subjects(sent_emails)[-1] == f"Order Cancelled {order.order_number} - MakHil"

    def test_decline_relists_products(self, order, admin, seller):
        product_id = order.items[0].product_id
        order_service.verify_payment(order.id, admin=admin)

        order_service.decline_order(order.id, seller=seller, reason="Dress was damaged")

        db.session.expire_all()
        assert (order.status, order.payment_status) == ("cancelled", "rejected")
        assert order.cancellation_reason == "Dress was damaged"
        product = db.session.get(Product, product_id)
        assert product.is_active is True
        assert product.quantity_available == 2

    def test_decline_restocks_last_unit(self, buyer, seller, admin, make_product, place_order):
        product = make_product(seller, quantity_available=1)
        order = place_order(buyer, product)
        order_service.verify_payment(order.id, admin=admin)

        order_service.decline_order(order.id, seller=seller, reason="Could not ship in time")

        db.session.refresh(product)
        assert product.quantity_available == 1
        assert product.is_active is True
        assert product in products_service.visible_products_query().all()
        cart, warning = cart_service.add_item(Cart(), cart_service.product_snapshot(product))
        assert warning is None
        assert cart.find(product.id).quantity == 1

    def test_decline_can_keep_products_off_sale(self, order, admin, seller):
        product_id = order.items[0].product_id
        order_service.verify_payment(order.id, admin=admin)

        order_service.decline_order(order.id, seller=seller, reason="Sold elsewhere", make_products_available=False)

        db.session.expire_all()
        assert db.session.get(Product, product_id).is_active is False

    def test_decline_requires_reason(self, order, admin, seller):
        order_service.verify_payment(order.id, admin=admin)

        with pytest.raises(ValueError):
            order_service.decline_order(order.id, seller=seller, reason="  ")

        assert order.status == "payment_verified"

    def test_ship_requires_tracking_number(self, order, admin, seller):
        order_service.verify_payment(order.id, admin=admin)

        with pytest.raises(ValueError):
            order_service.ship_order(order.id, seller=seller, tracking_number="")

    @pytest.mark.parametrize("action", ["start_processing", "ship", "decline", "mark_delivered"])
    def test_pending_payment_blocks_fulfilment(self, order, seller, buyer, action):
        order_before = (order.status, order.payment_status)
        calls = {
            "start_processing": lambda: order_service.start_processing(order.id, seller=seller),
            "ship": lambda: order_service.ship_order(order.id, seller=seller, tracking_number="T"),
            "decline": lambda: order_service.decline_order(order.id, seller=seller, reason="No"),
            "mark_delivered": lambda: order_service.mark_delivered(order.id, actor=buyer),
        }

        with pytest.raises(OrderTransitionError):
            calls[action]()

        db.session.refresh(order)
        assert (order.status, order.payment_status) == order_before

    def test_cannot_verify_twice(self, order, admin):
        order_service.verify_payment(order.id, admin=admin)

        with pytest.raises(OrderTransitionError):
            order_service.verify_payment(order.id, admin=admin)

    def test_cancelled_is_terminal(self, order, admin, seller):
        order_service.reject_payment(order.id, admin=admin)

        with pytest.raises(OrderTransitionError):
            order_service.verify_payment(order.id, admin=admin)
        with pytest.raises(OrderTransitionError):
            order_service.ship_order(order.id, seller=seller, tracking_number="T")

    def test_cannot_ship_twice_or_after_delivery(self, order, admin, seller, buyer):
        order_service.verify_payment(order.id, admin=admin)
        order_service.ship_order(order.id, seller=seller, tracking_number="1Z-FIRST")
        shipped_at = order.shipped_at

        with pytest.raises(OrderTransitionError):
            order_service.ship_order(order.id, seller=seller, tracking_number="1Z-SECOND")

        order_service.mark_delivered(order.id, actor=buyer)
        with pytest.raises(OrderTransitionError):
            order_service.ship_order(order.id, seller=seller, tracking_number="1Z-THIRD")

        db.session.refresh(order)
        assert order.status == "delivered"
        assert order.tracking_number == "1Z-FIRST"
        assert order.shipped_at == shipped_at

    def test_buyer_cannot_ship(self, order, admin, buyer):
        order_service.verify_payment(order.id, admin=admin)

        with pytest.raises(OrderTransitionError):
            order_service.ship_order(order.id, seller=buyer, tracking_number="T")

    def test_other_seller_sees_not_found(self, order, admin, other_seller):
        order_service.verify_payment(order.id, admin=admin)

        with pytest.raises(OrderNotFoundError):
            order_service.ship_order(order.id, seller=other_seller, tracking_number="T")

    def test_seller_cannot_mark_delivered(self, order, admin, seller):
        order_service.verify_payment(order.id, admin=admin)
        order_service.ship_order(order.id, seller=seller, tracking_number="T")

        with pytest.raises(OrderTransitionError):
            order_service.mark_delivered(order.id, actor=seller)

    def test_admin_can_mark_delivered(self, order, admin, seller):
        order_service.verify_payment(order.id, admin=admin)
        order_service.ship_order(order.id, seller=seller, tracking_number="T")

        order_service.mark_delivered(order.id, actor=admin)

        assert order.status == "delivered"

    def test_allowed_actions_per_party(self, order, admin, seller, buyer):
        assert order_service.allowed_actions(order, admin) == ["reject_payment", "verify_payment"]
        assert order_service.allowed_actions(order, seller) == []
        assert order_service.allowed_actions(order, buyer) == []

        order_service.verify_payment(order.id, admin=admin)
        assert order_service.allowed_actions(order, seller) == ["decline", "ship", "start_processing"]

    def test_emails_follow_transitions(self, order, admin, seller, sent_emails):
        sent_emails.clear()

        order_service.verify_payment(order.id, admin=admin)
        order_service.ship_order(order.id, seller=seller, tracking_number="TRK-42")

        assert subjects(sent_emails) == [
            f"Payment Verified {order.order_number} - MakHil",
            f"Your Order Has Shipped {order.order_number} - MakHil",
        ]
        assert "TRK-42" in sent_emails[-1]["html"]


class TestOrderQueries:
    def test_buyer_and_seller_views(self, order, buyer, seller, other_buyer):
        assert [o.id for o in order_service.list_orders(viewer=buyer)] == [order.id]
        assert order_service.list_orders(viewer=seller) == []
        assert [o.id for o in order_service.list_orders(viewer=seller, as_seller=True)] == [order.id]
        assert order_service.list_orders(viewer=other_buyer) == []

    def test_admin_filters(self, order, admin):
        assert [o.id for o in order_service.list_orders(viewer=admin, payment_status="pending")] == [order.id]
        assert order_service.list_orders(viewer=admin, status="shipped") == []

    def test_invalid_filter(self, order, admin):
        with pytest.raises(ValueError):
            order_service.list_orders(viewer=admin, status="lost")

    def test_pending_payment_count(self, order):
        assert order_service.pending_payment_count() == 1


class TestOrderRoutes:
    def test_get_order_access(self, client, order, buyer, seller, other_buyer, admin):
        assert client.get(f'/api/orders/{order.id}', headers=headers_for(buyer)).status_code == 200
        assert client.get(f'/api/orders/{order.id}', headers=headers_for(seller)).status_code == 200
        assert client.get(f'/api/orders/{order.id}', headers=headers_for(admin)).status_code == 200
        assert client.get(f'/api/orders/{order.id}', headers=headers_for(other_buyer)).status_code == 404

    def test_order_body_lists_allowed_actions(self, client, order, admin):
        response = client.get(f'/api/orders/{order.id}', headers=headers_for(admin))

        assert response.json["order"]["allowed_actions"] == ["reject_payment", "verify_payment"]
        assert response.json["order"]["can_mark_refunded"] is False

    def test_full_flow_over_http(self, client, order, admin, seller, buyer):
        admin_h, seller_h, buyer_h = headers_for(admin), headers_for(seller), headers_for(buyer)

        response = client.post(f'/api/orders/{order.id}/verify-payment', headers=admin_h)
        assert response.status_code == 200
        assert response.json["order"]["status"] == "payment_verified"

        response = client.post(f'/api/orders/{order.id}/process', headers=seller_h)
        assert response.json["order"]["status"] == "processing"

        response = client.post(f'/api/orders/{order.id}/ship', json={"tracking_number": "1Z"}, headers=seller_h)
        assert response.json["order"]["status"] == "shipped"

        response = client.post(f'/api/orders/{order.id}/mark-delivered', headers=buyer_h)
        assert response.status_code == 200
        assert response.json["order"]["status"] == "delivered"
        assert response.json["order"]["can_request_refund"] is True

    def test_invalid_transition_is_409(self, client, order, seller, admin):
        client.post(f'/api/orders/{order.id}/reject-payment', json={"reason": "Blurry"}, headers=headers_for(admin))

        response = client.post(f'/api/orders/{order.id}/ship', json={"tracking_number": "1Z"},
                               headers=headers_for(seller))

        assert response.status_code == 409

    def test_decline_honours_string_false(self, client, order, seller, admin):
        product_id = order.items[0].product_id
        client.post(f'/api/orders/{order.id}/verify-payment', headers=headers_for(admin))

        response = client.post(f'/api/orders/{order.id}/decline',
                               json={"reason": "Sold elsewhere", "make_products_available": "false"},
                               headers=headers_for(seller))

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(Product, product_id).is_active is False

    def test_decline_rejects_non_boolean_flag(self, client, order, seller, admin):
        client.post(f'/api/orders/{order.id}/verify-payment', headers=headers_for(admin))

        response = client.post(f'/api/orders/{order.id}/decline',
                               json={"reason": "Sold elsewhere", "make_products_available": "maybe"},
                               headers=headers_for(seller))

        assert response.status_code == 400
        db.session.refresh(order)
        assert order.status == "payment_verified"

    def test_missing_tracking_number_is_400(self, client, order, seller, admin):
        client.post(f'/api/orders/{order.id}/verify-payment', headers=headers_for(admin))

        response = client.post(f'/api/orders/{order.id}/ship', json={}, headers=headers_for(seller))

        assert response.status_code == 400

    def test_seller_listing(self, client, order, seller):
        response = client.get('/api/orders?as=seller', headers=headers_for(seller))

        assert [o["id"] for o in response.json["items"]] == [order.id]

    def test_buyer_cannot_list_as_seller(self, client, order, buyer):
        response = client.get('/api/orders?as=seller', headers=headers_for(buyer))

        assert response.status_code == 403
