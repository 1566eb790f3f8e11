from datetime import datetime, timedelta

from fastapi import status

from services import highlights as highlight_service
from services import trial as trial_service


class TestAuth:
    def test_register_login_and_me(self, client, db):
        response = client.post(
            "/api/auth/register",
            json={"firstName": "Ana", "lastName": "Souza", "email": "Ana@Example.com", "password": "secret123"},
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["email"] == "ana@example.com"

        response = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "secret123"})
        assert response.status_code == status.HTTP_200_OK
        tokens = response.json()

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert response.json()["firstName"] == "Ana"

        response = client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        assert response.status_code == status.HTTP_200_OK

    def test_duplicate_email(self, client, seller):
        response = client.post(
            "/api/auth/register",
            json={"firstName": "M", "lastName": "S", "email": seller.email, "password": "secret123"},
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"success": False, "message": "Email already registered"}

    def test_wrong_password(self, client, seller):
        response = client.post("/api/auth/login", json={"email": seller.email, "password": "nope"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_token(self, client, db):
        response = client.get("/api/stores/mine")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["success"] is False

    def test_refresh_token_is_not_an_access_token(self, client, seller):
        tokens = client.post("/api/auth/login", json={"email": seller.email, "password": "testpass123"}).json()

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refreshToken']}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestStores:
    def test_create_store_starts_trial(self, client, auth_headers):
        response = client.post("/api/stores", json={"name": "Mercadinho", "category": "food"}, headers=auth_headers)

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["success"] is True
        assert body["store"]["isInTrial"] is True
        assert body["store"]["subscriptionPlan"] == "freemium"
        assert body["store"]["highlightWeight"] == 2
        assert body["trial"]["isActive"] is True
        assert body["trial"]["daysRemaining"] in (14, 15)

    def test_invalid_body_is_400(self, client, auth_headers):
        response = client.post("/api/stores", json={"category": "food"}, headers=auth_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"]

    def test_my_stores(self, client, auth_headers, store):
        response = client.get("/api/stores/mine", headers=auth_headers)

        assert [s["id"] for s in response.json()] == [store.id]

    def test_usage(self, client, auth_headers, store, make_product):
        make_product(store)

        response = client.get(f"/api/stores/{store.id}/usage", headers=auth_headers)

        body = response.json()
        assert body["plan"] == "freemium"
        assert body["isInTrial"] is False
        assert body["usage"]["products"] == {"current": 1, "max": 5}

    def test_usage_of_other_store_forbidden(self, client, admin, make_store, auth_headers):
        other = make_store(admin, name="Not yours")

        response = client.get(f"/api/stores/{other.id}/usage", headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestPlanLimitGate:
    def test_product_created_under_limit(self, client, auth_headers, store):
        response = client.post(
            "/api/products",
            json={"name": "Pão", "category": "food", "price": 4.5, "stock": 10},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["storeId"] == store.id

    def test_product_limit_reached(self, client, auth_headers, store, make_product):
        for i in range(5):
            make_product(store, name=f"P{i}")

        response = client.post(
            "/api/products",
            json={"storeId": store.id, "name": "Extra", "category": "food", "price": 1},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        body = response.json()
        assert body["success"] is False
        assert body["planLimitReached"] is True
        assert body["currentCount"] == 5
        assert body["maxAllowed"] == 5
        assert body["suggestedUpgrade"] == "start"

    def test_list_products(self, client, auth_headers, store, make_product):
        make_product(store, name="Café")

        response = client.get("/api/products", params={"storeId": store.id}, headers=auth_headers)

        assert [p["name"] for p in response.json()] == ["Café"]

    def test_flash_promotion_needs_feature(self, client, auth_headers, store, make_product):
        product = make_product(store)
        now = datetime.utcnow()
        payload = {
            "productId": product.id,
            "type": "flash",
            "discountPercentage": 30,
            "startTime": now.isoformat(),
            "endTime": (now + timedelta(hours=2)).isoformat(),
        }

        response = client.post("/api/promotions", json=payload, headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "planLimitReached" not in response.json()

    def test_flash_promotion_during_trial(self, client, db, auth_headers, store, make_product):
        trial_service.activate_trial(db, store)
        product = make_product(store)
        now = datetime.utcnow()
        payload = {
            "productId": product.id,
            "type": "flash",
            "discountPercentage": 30,
            "startTime": now.isoformat(),
            "endTime": (now + timedelta(hours=2)).isoformat(),
        }

        response = client.post("/api/promotions", json=payload, headers=auth_headers)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["type"] == "flash"

    def test_promotion_for_unknown_product(self, client, auth_headers, store):
        now = datetime.utcnow()
        payload = {
            "productId": 999,
            "discountPercentage": 10,
            "startTime": now.isoformat(),
            "endTime": (now + timedelta(days=1)).isoformat(),
        }

        response = client.post("/api/promotions", json=payload, headers=auth_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_freemium_coupon_denied(self, client, auth_headers, store):
        now = datetime.utcnow()
        payload = {
            "code": "welcome",
            "discountPercentage": 10,
            "startTime": now.isoformat(),
            "endTime": (now + timedelta(days=7)).isoformat(),
        }

        response = client.post("/api/coupons", json=payload, headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["maxAllowed"] == 0

    def test_coupon_created_on_paid_plan(self, client, auth_headers, seller, make_store):
        start = make_store(seller, name="Start", plan="start", weight=3)
        now = datetime.utcnow()
        payload = {
            "storeId": start.id,
            "code": "welcome",
            "discountPercentage": 10,
            "startTime": now.isoformat(),
            "endTime": (now + timedelta(days=7)).isoformat(),
        }

        response = client.post("/api/coupons", json=payload, headers=auth_headers)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["code"] == "WELCOME"


class TestHighlightsApi:
    def test_home_highlights(self, client, seller, highlight_config, make_store, make_product):
        premium = make_store(seller, name="Premium", plan="premium", weight=5)
        make_product(premium, name="Bolo")

        response = client.get("/api/home-highlights")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        assert body["totalSections"] == len(body["highlights"])
        item = body["highlights"]["em_destaque_premium"][0]
        assert item["productName"] == "Bolo"
        assert item["calculatedWeight"] == 5

    def test_home_highlights_failure_returns_empty_feed(self, client, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(highlight_service, "get_home_highlights", _boom)

        response = client.get("/api/home-highlights")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        body = response.json()
        assert body["success"] is False
        assert body["highlights"] == {}

    def test_impression_recorded_once(self, client, store):
        payload = {"storeId": store.id, "section": "novidades"}

        first = client.post("/api/highlights/impression", json=payload)
        second = client.post("/api/highlights/impression", json=payload)

        assert first.json()["recorded"] is True
        assert second.json()["recorded"] is False
        assert second.json()["success"] is True

    def test_impression_unknown_store(self, client, db):
        response = client.post("/api/highlights/impression", json={"storeId": 999, "section": "novidades"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_impression_unknown_product(self, client, store):
        response = client.post(
            "/api/highlights/impression", json={"storeId": store.id, "productId": 999, "section": "novidades"}
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["success"] is False

    def test_analytics_for_owner_in_trial(self, client, db, auth_headers, store):
        trial_service.activate_trial(db, store)
        client.post("/api/highlights/impression", json={"storeId": store.id, "section": "novidades"})

        response = client.get(f"/api/highlights/{store.id}/analytics", params={"days": 7}, headers=auth_headers)

        body = response.json()
        assert body["period"] == "7 days"
        assert body["analytics"][0]["section"] == "novidades"
        assert body["analytics"][0]["count"] == 1

    def test_analytics_needs_advanced_analytics_plan(self, client, auth_headers, store):
        response = client.get(f"/api/highlights/{store.id}/analytics", headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["success"] is False

    def test_analytics_for_pro_owner(self, client, db, auth_headers, store):
        store.subscription_plan = "pro"
        db.commit()

        response = client.get(f"/api/highlights/{store.id}/analytics", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK

    def test_analytics_for_admin(self, client, admin_headers, store):
        response = client.get(f"/api/highlights/{store.id}/analytics", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK

    def test_weight_update_requires_admin(self, client, auth_headers, store):
        response = client.put(f"/api/highlights/{store.id}/weight", json={"weight": 3}, headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_weight_update(self, client, admin_headers, store):
        response = client.put(f"/api/highlights/{store.id}/weight", json={"weight": 7.5}, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["highlightWeight"] == 7.5

    def test_weight_out_of_range(self, client, admin_headers, store):
        response = client.put(f"/api/highlights/{store.id}/weight", json={"weight": 11}, headers=admin_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestPlansAndTrialApi:
    def test_list_plans_marks_current(self, client, auth_headers, store):
        response = client.get("/api/plans", headers=auth_headers)

        plans = {plan["id"]: plan for plan in response.json()["plans"]}
        assert list(plans) == ["freemium", "start", "pro", "premium"]
        assert plans["freemium"]["isCurrent"] is True
        assert plans["pro"]["isCurrent"] is False
        assert plans["start"]["yearlyPrice"] == round(29.9 * 12 * 0.8, 2)
        assert plans["freemium"]["trialDays"] == 0
        assert plans["pro"]["features"]["allowsHighlights"] is True
        assert plans["start"]["features"]["allowsAdvancedAnalytics"] is False

    def test_list_plans_anonymous(self, client, db):
        response = client.get("/api/plans")

        assert not any(plan["isCurrent"] for plan in response.json()["plans"])

    def test_trial_status_without_trial(self, client, auth_headers, store):
        response = client.get("/api/plans/trial/status", headers=auth_headers)

        body = response.json()
        assert body["currentPlan"] == "freemium"
        assert body["trial"]["isActive"] is False
        assert body["trial"]["hasUsedTrial"] is False
        assert body["features"]["maxProducts"] == 5

    def test_start_trial_then_reject_second_start(self, client, auth_headers, store):
        response = client.post("/api/plans/trial/start", json={"planId": "premium"}, headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["currentPlan"] == "trial"
        assert response.json()["features"]["maxProducts"] == -1

        response = client.post("/api/plans/trial/start", json={"planId": "premium"}, headers=auth_headers)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_start_trial_unknown_plan(self, client, auth_headers, store):
        response = client.post("/api/plans/trial/start", json={"planId": "gold"}, headers=auth_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_status_read_downgrades_ended_trial(self, client, db, auth_headers, store):
        trial_service.activate_trial(db, store, now=datetime.utcnow() - timedelta(days=16))

        response = client.get(f"/api/trial/{store.id}/status", headers=auth_headers)

        body = response.json()
        assert body["trial"]["isActive"] is False
        assert body["trial"]["isExpired"] is True
        db.refresh(store)
        assert store.is_in_trial is False

    def test_convert_trial(self, client, db, auth_headers, store):
        trial_service.activate_trial(db, store)

        response = client.post(
            f"/api/trial/{store.id}/convert",
            json={"planId": 3, "stripeSubscriptionId": "sub_42"},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["newPlan"] == "pro"
        assert response.json()["highlightWeight"] == 4

    def test_convert_without_trial(self, client, auth_headers, store):
        response = client.post(f"/api/trial/{store.id}/convert", json={"planId": 3}, headers=auth_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_statistics_admin_only(self, client, auth_headers, admin_headers, store):
        assert client.get("/api/trial/statistics", headers=auth_headers).status_code == status.HTTP_403_FORBIDDEN

        response = client.get("/api/trial/statistics", headers=admin_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["totalTrials"] == 0


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
