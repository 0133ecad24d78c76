import stripe

from conftest import DAY0, PRICE_IDS, auth_headers, signed_webhook


def route(client, path, headers=None):
    response = client.get("/api/access/route", params={"path": path}, headers=headers or {})
    assert response.status_code == 200, response.text
    return response.json()


def checkout_completed_event(user_id: str, event_id: str = "evt_checkout_1") -> dict:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "created": int(DAY0.timestamp()),
        "data": {
            "object": {
                "id": "cs_test_1",
                "mode": "subscription",
                "status": "complete",
                "payment_status": "paid",
                "metadata": {"user_id": user_id, "plan_type": "monthly"},
                "customer": "cus_1",
                "subscription": "sub_1",
                "invoice": "in_1",
            }
        },
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "stripe": True}


def test_register_login_and_me(client, register_user):
    registered = register_user()

    duplicate = client.post(
        "/api/users/register", json={"email": "seeker@example.com", "password": "s3cret-pass"}
    )
    assert duplicate.status_code == 400

    login = client.post(
        "/api/users/login", json={"email": "seeker@example.com", "password": "s3cret-pass"}
    )
    assert login.status_code == 200
    assert login.json()["token_type"] == "bearer"

    bad_login = client.post(
        "/api/users/login", json={"email": "seeker@example.com", "password": "wrong-pass"}
    )
    assert bad_login.status_code == 401

    me = client.get("/api/users/me", headers=auth_headers(registered))
    assert me.status_code == 200
    assert me.json()["id"] == registered["user_id"]
    assert me.json()["access_status"] == "no_subscription"
    assert me.json()["has_active_access"] is False


def test_me_requires_token(client):
    assert client.get("/api/users/me").status_code == 401
    assert client.get("/api/users/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_signed_out_navigation(client):
    assert route(client, "/dashboard") == {
        "path": "/dashboard",
        "category": "protected",
        "action": "redirect",
        "target": "/",
        "reason": "signed_out",
    }
    assert route(client, "/privacy-policy")["action"] == "render"


def test_trial_onboarding_flow(client, register_user):
    headers = auth_headers(register_user())

    assert route(client, "/dashboard", headers)["target"] == "/onboarding"

    trial = client.post("/api/subscription/trial", headers=headers)
    assert trial.status_code == 201
    body = trial.json()
    assert body["subscription"]["plan_type"] == "trial"
    assert body["has_active_access"] is True
    assert body["days_remaining"] == 7

    # Active trial, onboarding not done: still sent to onboarding.
    decision = route(client, "/dashboard", headers)
    assert decision["target"] == "/onboarding"
    assert decision["reason"] == "onboarding_incomplete"

    done = client.post("/api/subscription/onboarding/complete", headers=headers)
    assert done.status_code == 200
    assert done.json()["subscription"]["has_completed_onboarding"] is True

    assert route(client, "/dashboard", headers)["action"] == "render"
    assert route(client, "/onboarding", headers)["target"] == "/dashboard"
    assert route(client, "/pricing", headers)["action"] == "render"


def test_repeat_trial_does_not_reset_window(client, register_user, clock):
    headers = auth_headers(register_user())
    client.post("/api/subscription/trial", headers=headers)
    clock.advance(days=3)
    again = client.post("/api/subscription/trial", headers=headers)
    assert again.json()["subscription"]["trial_start"].startswith("2025-03-01")
    assert again.json()["days_remaining"] == 4


def test_onboarding_without_trial_is_not_found(client, register_user):
    headers = auth_headers(register_user())
    response = client.post("/api/subscription/onboarding/complete", headers=headers)
    assert response.status_code == 404


def test_profile_requires_active_access(client, register_user, clock):
    headers = auth_headers(register_user())

    blocked = client.get("/api/profile", headers=headers)
    assert blocked.status_code == 403
    assert blocked.json()["detail"]["status"] == "no_subscription"

    client.post("/api/subscription/trial", headers=headers)
    client.post("/api/subscription/onboarding/complete", headers=headers)

    check_in = client.post("/api/profile/check-in", headers=headers)
    assert check_in.status_code == 200
    assert check_in.json()["app_streak"] == 1

    points = client.post("/api/profile/points", json={"points": 150}, headers=headers)
    assert points.json()["current_level"] == 2

    clock.advance(days=7, seconds=1)
    expired = client.get("/api/profile", headers=headers)
    assert expired.status_code == 403
    assert expired.json()["detail"]["status"] == "trial_expired"
    assert expired.json()["detail"]["redirect"] == "/pricing"
    assert route(client, "/dashboard", headers)["target"] == "/pricing"


def test_protected_api_requires_onboarding(client, register_user):
    headers = auth_headers(register_user())

    no_record = client.get("/api/profile", headers=headers)
    assert no_record.status_code == 403
    assert no_record.json()["detail"]["redirect"] == "/onboarding"

    client.post("/api/subscription/trial", headers=headers)
    assert route(client, "/dashboard", headers)["target"] == "/onboarding"

    blocked = client.get("/api/profile", headers=headers)
    assert blocked.status_code == 403
    detail = blocked.json()["detail"]
    assert detail["reason"] == "onboarding_incomplete"
    assert detail["redirect"] == "/onboarding"
    assert detail["status"] == "active"

    client.post("/api/subscription/onboarding/complete", headers=headers)
    assert client.get("/api/profile", headers=headers).status_code == 200


def test_cancel_trial_conflicts(client, register_user):
    headers = auth_headers(register_user())
    client.post("/api/subscription/trial", headers=headers)

    response = client.post("/api/subscription/cancel", headers=headers)
    assert response.status_code == 409

    status = client.get("/api/subscription", headers=headers).json()
    assert status["subscription"]["is_active"] is True


def test_plans_listing(client):
    response = client.get("/api/subscription/plans")
    assert response.status_code == 200
    plans = {plan["plan_type"]: plan for plan in response.json()}
    assert plans["weekly"]["price_id"] == PRICE_IDS["weekly"]
    assert plans["monthly"]["amount"] == 19900


def test_checkout_and_optimistic_confirmation(client, register_user, monkeypatch):
    registered = register_user()
    headers = auth_headers(registered)
    client.post("/api/subscription/trial", headers=headers)
    client.post("/api/subscription/onboarding/complete", headers=headers)

    monkeypatch.setattr(
        stripe.checkout.Session,
        "create",
        lambda **kwargs: type("Session", (), {"id": "cs_test_1", "url": "https://pay.test/cs_test_1"})(),
    )
    checkout = client.post("/api/subscription/checkout", json={"plan_type": "monthly"}, headers=headers)
    assert checkout.status_code == 200
    assert checkout.json() == {"session_id": "cs_test_1", "checkout_url": "https://pay.test/cs_test_1"}

    session = checkout_completed_event(registered["user_id"])["data"]["object"]
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", lambda session_id: session)
    confirm = client.post(
        "/api/subscription/checkout/confirm", json={"session_id": "cs_test_1"}, headers=headers
    )
    assert confirm.status_code == 200
    body = confirm.json()
    assert body["confirmed"] is True
    assert body["status"]["subscription"]["plan_type"] == "monthly"
    assert body["status"]["subscription"]["confirmed_by_gateway"] is False
    assert body["status"]["is_paid_subscriber"] is True
    assert body["status"]["days_remaining"] == 30

    assert route(client, "/pricing", headers)["target"] == "/dashboard"


def test_checkout_trial_plan_rejected(client, register_user):
    headers = auth_headers(register_user())
    response = client.post("/api/subscription/checkout", json={"plan_type": "trial"}, headers=headers)
    assert response.status_code == 400


def test_checkout_gateway_error(client, register_user, monkeypatch):
    headers = auth_headers(register_user())

    def failing_create(**kwargs):
        raise stripe.StripeError("gateway unavailable")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)
    response = client.post("/api/subscription/checkout", json={"plan_type": "weekly"}, headers=headers)
    assert response.status_code == 502


def test_webhook_activation_is_idempotent(client, register_user):
    registered = register_user()
    headers = auth_headers(registered)
    client.post("/api/subscription/trial", headers=headers)

    event = checkout_completed_event(registered["user_id"])
    first = client.post("/api/webhooks/stripe", **signed_webhook(event))
    assert first.status_code == 200
    assert first.json() == {"status": "applied"}

    second = client.post("/api/webhooks/stripe", **signed_webhook(event))
    assert second.json() == {"status": "duplicate"}

    status = client.get("/api/subscription", headers=headers).json()
    assert status["subscription"]["plan_type"] == "monthly"
    assert status["subscription"]["confirmed_by_gateway"] is True
    assert status["subscription"]["paid_end"].startswith("2025-03-31")


def test_webhook_rejects_bad_signature(client, register_user):
    registered = register_user()
    delivery = signed_webhook(checkout_completed_event(registered["user_id"]), secret="whsec_forged")
    response = client.post("/api/webhooks/stripe", **delivery)
    assert response.status_code == 400

    status = client.get("/api/subscription", headers=auth_headers(registered)).json()
    assert status["subscription"] is None


def test_webhook_ignores_unrelated_events(client):
    event = {"id": "evt_x", "type": "customer.created", "created": 0, "data": {"object": {"id": "cus_1"}}}
    response = client.post("/api/webhooks/stripe", **signed_webhook(event))
    assert response.json() == {"status": "ignored"}


def test_cancel_paid_plan_stops_renewal(client, register_user, monkeypatch):
    registered = register_user()
    headers = auth_headers(registered)
    client.post("/api/subscription/trial", headers=headers)
    client.post("/api/subscription/onboarding/complete", headers=headers)
    client.post("/api/webhooks/stripe", **signed_webhook(checkout_completed_event(registered["user_id"])))

    modified = []
    monkeypatch.setattr(
        stripe.Subscription,
        "modify",
        lambda subscription_id, **kwargs: modified.append((subscription_id, kwargs)),
    )
    response = client.post("/api/subscription/cancel", headers=headers)
    assert response.status_code == 200
    assert response.json()["access_status"] == "cancelled"
    assert response.json()["has_active_access"] is False
    assert modified == [("sub_1", {"cancel_at_period_end": True})]

    assert route(client, "/dashboard", headers)["target"] == "/pricing"
