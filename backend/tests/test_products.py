"""
Catalog visibility, search and filters, seller listing management and the
admin review gate.
"""

import pytest

from marketplace.extensions import db
from marketplace.models import Favorite, OrderItem, Product
from marketplace.services import products_service, review_service
from marketplace.services.review_service import ReviewError

from conftest import headers_for, screenshot


NEW_LISTING = {
    "title": "Tilet Wedding Dress",
    "price_cents": 45000,
    "condition": "excellent",
    "tags": ["Gold", "Embroidered"],
    "images": ["http://makhil.test/uploads/product-images/2/a.jpg"],
    "designer": "Addis Couture",
}


class TestCatalog:
    def test_only_approved_and_active_are_listed(self, client, seller, make_product):
        visible = make_product(seller, title="Visible")
        make_product(seller, title="Pending", review_status="pending")
        make_product(seller, title="Rejected", review_status="rejected")
        make_product(seller, title="Sold", is_active=False)

        response = client.get('/api/products')

        assert response.status_code == 200
        assert [p["id"] for p in response.json["items"]] == [visible.id]
        assert response.json["total"] == 1

    def test_search_matches_title_or_tag(self, seller, make_product):
        kemis = make_product(seller, title="Habesha Kemis", tags=["White"])
        zuria = make_product(seller, title="Zuria", tags=["Red", "Holiday"])

        assert [p["id"] for p in products_service.list_catalog(q="kemis")["items"]] == [kemis.id]
        assert [p["id"] for p in products_service.list_catalog(q="HOLI")["items"]] == [zuria.id]

    def test_tag_filter_requires_every_tag(self, client, seller, make_product):
        both = make_product(seller, tags=["Gold", "Wedding"])
        make_product(seller, tags=["Gold"])

        response = client.get('/api/products?tags=Gold&tags=Wedding')

        assert [p["id"] for p in response.json["items"]] == [both.id]

    def test_condition_filter(self, seller, make_product):
        new = make_product(seller, condition="new")
        used = make_product(seller, condition="good")

        assert [p["id"] for p in products_service.list_catalog(condition="new")["items"]] == [new.id]
        assert [p["id"] for p in products_service.list_catalog(condition="used")["items"]] == [used.id]
        assert products_service.list_catalog(condition="all")["total"] == 2

    def test_bad_condition_filter(self, client):
        assert client.get('/api/products?condition=vintage').status_code == 400

    def test_pagination(self, seller, make_product):
        for i in range(5):
            make_product(seller, title=f"Dress {i}")

        page = products_service.list_catalog(page=2, per_page=2)

        assert page["total"] == 5
        assert page["pages"] == 3
        assert len(page["items"]) == 2

    def test_hidden_product_detail(self, client, seller, other_seller, admin, make_product):
        product = make_product(seller, review_status="pending")

        assert client.get(f'/api/products/{product.id}').status_code == 404
        assert client.get(f'/api/products/{product.id}', headers=headers_for(other_seller)).status_code == 404
        assert client.get(f'/api/products/{product.id}', headers=headers_for(seller)).status_code == 200
        assert client.get(f'/api/products/{product.id}', headers=headers_for(admin)).status_code == 200

    def test_detail_includes_public_seller(self, client, seller, make_product):
        product = make_product(seller)

        response = client.get(f'/api/products/{product.id}')

        assert response.json["seller"]["full_name"] == "Meron Seller"
        assert "email" not in response.json["seller"]

    def test_seller_storefront(self, client, seller, buyer, make_product):
        product = make_product(seller)
        make_product(seller, review_status="pending")

        response = client.get(f'/api/sellers/{seller.id}')
        assert response.status_code == 200
        assert [p["id"] for p in response.json["products"]] == [product.id]

        assert client.get(f'/api/sellers/{buyer.id}').status_code == 404

    def test_tag_vocabulary(self, client):
        response = client.get('/api/products/tags')

        assert "Gold" in response.json["colors"]
        assert response.json["conditions"] == ["new", "like_new", "excellent", "good", "fair"]


class TestSellerListings:
    def test_create_starts_pending(self, client, seller):
        response = client.post('/api/products', json=NEW_LISTING, headers=headers_for(seller))

        assert response.status_code == 201
        assert response.json["review_status"] == "pending"
        assert response.json["is_active"] is True
        assert response.json["quantity_available"] == 1
        assert response.json["seller_id"] == seller.id

    def test_create_with_uploaded_images(self, client, seller):
        form = {
            "title": "Netela Shawl",
            "price_cents": "2500",
            "condition": "new",
            "tags": ["White", "Handwoven"],
            "images": [screenshot("front.jpg"), screenshot("back.png")],
        }

        response = client.post('/api/products', data=form, headers=headers_for(seller),
                               content_type='multipart/form-data')

        assert response.status_code == 201
        assert len(response.json["images"]) == 2
        assert all(url.startswith("http://makhil.test/uploads/product-images/") for url in response.json["images"])

    @pytest.mark.parametrize("patch,message", [
        ({"price_cents": 0}, "price_cents must be > 0"),
        ({"price_cents": 10_000_000}, "price_cents cannot exceed"),
        ({"price_cents": 12.5}, "must be an integer"),
        ({"condition": "vintage"}, "condition must be one of"),
        ({"tags": ["Wedding"]}, "At least one color tag is required"),
        ({"tags": ["Gold", "Sparkly"]}, "Unknown tags"),
        ({"images": []}, "At least one product image is required"),
        ({"images": [f"http://x/{i}.jpg" for i in range(6)]}, "at most 5 images"),
        ({"quantity_available": 0}, "quantity_available must be between 1 and 999"),
    ])
    def test_create_validation(self, client, seller, patch, message):
        response = client.post('/api/products', json=dict(NEW_LISTING, **patch), headers=headers_for(seller))

        assert response.status_code == 400
        assert message in response.json["error"]

    def test_missing_required_fields(self, client, seller):
        response = client.post('/api/products', json={"title": "Only a title"}, headers=headers_for(seller))

        assert response.status_code == 400
        assert response.json["error"] == "Missing required fields: condition, price_cents"

    def test_buyer_cannot_create(self, client, buyer):
        assert client.post('/api/products', json=NEW_LISTING, headers=headers_for(buyer)).status_code == 403

    def test_tags_deduplicated(self, seller):
        product = products_service.create_product(
            seller=seller, patch=dict(NEW_LISTING, tags=["Gold", "Gold", "Wedding"])
        )

        assert product.tags == ["Gold", "Wedding"]

    def test_edit_rejected_resubmits(self, seller, make_product):
        product = make_product(seller, review_status="rejected", rejection_reason="Blurry photos", is_active=False)

        products_service.update_product(product_id=product.id, seller=seller, patch={"title": "Better photos"})

        assert product.review_status == "pending"
        assert product.rejection_reason is None
        assert product.is_active is True

    def test_resubmission_respects_explicit_off_switch(self, seller, make_product):
        product = make_product(seller, review_status="rejected", rejection_reason="Blurry photos", is_active=False)

        products_service.update_product(
            product_id=product.id, seller=seller, patch={"title": "Better photos", "is_active": False}
        )

        assert product.review_status == "pending"
        assert product.is_active is False

    def test_edit_approved_stays_approved(self, seller, make_product):
        product = make_product(seller)

        products_service.update_product(product_id=product.id, seller=seller, patch={"price_cents": 9900})

        assert product.review_status == "approved"
        assert product.price_cents == 9900

    def test_edit_other_sellers_product(self, client, seller, other_seller, make_product):
        product = make_product(seller)

        response = client.put(f'/api/products/{product.id}', json={"title": "Mine now"},
                              headers=headers_for(other_seller))

        assert response.status_code == 404

    def test_edit_cannot_touch_review_fields(self, client, seller, make_product):
        product = make_product(seller, review_status="pending")

        response = client.put(f'/api/products/{product.id}', json={"review_status": "approved"},
                              headers=headers_for(seller))

        assert response.status_code == 400
        assert response.json["error"] == "Field not allowed: review_status"

    def test_mine_lists_every_state(self, client, seller, other_seller, make_product):
        make_product(seller, review_status="pending")
        make_product(seller, review_status="rejected")
        make_product(other_seller)

        response = client.get('/api/products/mine', headers=headers_for(seller))

        assert len(response.json["items"]) == 2

    def test_delete_keeps_order_history(self, seller, buyer, make_product, place_order):
        product = make_product(seller)
        order = place_order(buyer, product)
        db.session.add(Favorite(user_id=buyer.id, product_id=product.id))
        db.session.commit()

        products_service.delete_product(product_id=product.id, seller=seller)

        db.session.expire_all()
        item = db.session.query(OrderItem).filter_by(order_id=order.id).one()
        assert item.product_id is None
        assert item.product_title == "Habesha Kemis"
        assert db.session.query(Favorite).count() == 0
        assert db.session.query(Product).count() == 0


class TestReview:
    def test_approve_pending(self, seller, admin, make_product, sent_emails):
        product = make_product(seller, review_status="pending")

        review_service.approve_product(product.id, reviewer=admin)

        assert product.review_status == "approved"
        assert product.reviewed_by_id == admin.id
        assert sent_emails[-1]["subject"] == 'Product Approved: "Habesha Kemis" - MakHil'
        assert f"http://makhil.test/products/{product.id}" in sent_emails[-1]["html"]

    def test_reject_deactivates_and_notifies(self, seller, admin, make_product, sent_emails):
        product = make_product(seller)

        review_service.reject_product(product.id, reviewer=admin, reason="Photos are blurry")

        assert product.review_status == "rejected"
        assert product.is_active is False
        assert product.rejection_reason == "Photos are blurry"
        assert sent_emails[-1]["to"] == ["seller@example.com"]
        assert "Photos are blurry" in sent_emails[-1]["html"]

    def test_rejected_listing_returns_to_catalog_after_resubmit_and_approval(self, seller, admin, make_product):
        product = make_product(seller)
        review_service.reject_product(product.id, reviewer=admin, reason="Photos are blurry")
        assert product not in products_service.visible_products_query().all()

        products_service.update_product(product_id=product.id, seller=seller, patch={"title": "Sharper photos"})
        review_service.approve_product(product.id, reviewer=admin)

        assert product.review_status == "approved"
        assert product.is_active is True
        assert product in products_service.visible_products_query().all()

    def test_reject_requires_reason(self, seller, admin, make_product):
        product = make_product(seller, review_status="pending")

        with pytest.raises(ValueError):
            review_service.reject_product(product.id, reviewer=admin, reason="")

        assert product.review_status == "pending"

    def test_rejected_cannot_be_approved_directly(self, seller, admin, make_product):
        product = make_product(seller, review_status="rejected")

        with pytest.raises(ReviewError):
            review_service.approve_product(product.id, reviewer=admin)

    def test_review_queue_over_http(self, client, seller, admin, make_product):
        pending = make_product(seller, review_status="pending")
        make_product(seller)

        response = client.get('/api/admin/products', headers=headers_for(admin))
        assert [p["id"] for p in response.json["items"]] == [pending.id]

        response = client.get('/api/admin/products?review_status=all', headers=headers_for(admin))
        assert len(response.json["items"]) == 2

        response = client.post(f'/api/admin/products/{pending.id}/approve', headers=headers_for(admin))
        assert response.status_code == 200
        assert response.json["product"]["review_status"] == "approved"

        response = client.post(f'/api/admin/products/{pending.id}/approve', headers=headers_for(admin))
        assert response.status_code == 409

    def test_reject_missing_product(self, client, admin):
        response = client.post('/api/admin/products/999/reject', json={"reason": "x"}, headers=headers_for(admin))

        assert response.status_code == 404
