EMAIL = "user@x.com"


def _wrong(code):
    return "000000" if code != "000000" else "111111"


def test_send_normalizes_email(client, sender):
    resp = client.post("/api/email-otp/send", json={"email": "  User@X.com "})

    assert resp.status_code == 200
    body = resp.json()
    assert body == {"success": True, "message": "OTP sent to your email", "email": EMAIL}
    assert sender.sent[-1][0] == EMAIL


def test_send_requires_email(client):
    resp = client.post("/api/email-otp/send", json={})

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "Email is required"


def test_send_rejects_malformed_email(client, sender):
    resp = client.post("/api/email-otp/send", json={"email": "not-an-email"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid email format"
    assert sender.sent == []


def test_verify_success(client, sender):
    client.post("/api/email-otp/send", json={"email": EMAIL})

    resp = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": sender.last_code(EMAIL)})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["verified"] is True
    assert body["email"] == EMAIL


def test_verify_requires_both_fields(client):
    resp = client.post("/api/email-otp/verify", json={"email": EMAIL})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Email and OTP are required"


def test_verify_unknown_email_is_client_error(client):
    resp = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": "123456"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "OTP not found. Please request a new OTP."}


def test_verify_mismatch_reports_attempts_remaining(client, sender):
    client.post("/api/email-otp/send", json={"email": EMAIL})
    wrong = _wrong(sender.last_code(EMAIL))

    first = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": wrong})
    second = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": wrong})
    third = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": wrong})
    fourth = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": sender.last_code(EMAIL)})

    assert first.status_code == 400
    assert first.json()["attemptsRemaining"] == 2
    assert second.json()["attemptsRemaining"] == 1
    assert third.status_code == 400
    assert third.json()["message"] == "Maximum OTP attempts exceeded. Please request a new OTP."
    assert fourth.json()["message"] == "OTP not found. Please request a new OTP."


def test_verify_after_expiry(client, sender, clock):
    client.post("/api/email-otp/send", json={"email": EMAIL})
    clock.advance(301)

    resp = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": sender.last_code(EMAIL)})

    assert resp.status_code == 400
    assert resp.json()["message"] == "OTP has expired. Please request a new OTP."


def test_resend_replaces_code(client, sender):
    client.post("/api/email-otp/send", json={"email": EMAIL})
    original = sender.last_code(EMAIL)

    resp = client.post("/api/email-otp/resend", json={"email": EMAIL})
    new_code = sender.last_code(EMAIL)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    if new_code != original:
        stale = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": original})
        assert stale.status_code == 400
    ok = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": new_code})
    assert ok.status_code == 200


def test_resend_without_prior_send_is_allowed(client, sender):
    resp = client.post("/api/email-otp/resend", json={"email": EMAIL})

    assert resp.status_code == 200
    assert sender.last_code(EMAIL)


def test_delivery_failure_returns_preview_in_development(client, sender):
    sender.fail_with = RuntimeError("smtp auth failed")

    resp = client.post("/api/email-otp/send", json={"email": EMAIL})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert len(body["previewCode"]) == 6
    ok = client.post("/api/email-otp/verify", json={"email": EMAIL, "otp": body["previewCode"]})
    assert ok.status_code == 200


def test_delivery_failure_is_server_error_in_production(client, sender, production):
    sender.fail_with = RuntimeError("smtp auth failed")

    resp = client.post("/api/email-otp/send", json={"email": EMAIL})

    assert resp.status_code == 500
    body = resp.json()
    assert body["success"] is False
    assert "error" not in body
    assert "previewCode" not in body


def test_status_shows_pending_code_in_development(client, sender, clock):
    client.post("/api/email-otp/send", json={"email": EMAIL})
    clock.advance(60)

    resp = client.get(f"/api/email-otp/status/{EMAIL}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["otp"] == sender.last_code(EMAIL)
    assert body["expiresIn"] == "240s"
    assert body["attempts"] == 0


def test_status_missing_record(client):
    resp = client.get(f"/api/email-otp/status/{EMAIL}")

    assert resp.status_code == 404
    assert resp.json()["success"] is False


def test_status_disabled_in_production(client, production):
    client.post("/api/email-otp/send", json={"email": EMAIL})

    resp = client.get(f"/api/email-otp/status/{EMAIL}")

    assert resp.status_code == 403
    assert resp.json() == {"success": False, "message": "This endpoint is only available in development"}


def test_health_and_unknown_route(client):
    assert client.get("/health").json() == {"status": "Server is running"}
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["message"] == "Endpoint not found"


def test_unset_app_env_closes_debug_surfaces(client, sender, unset_app_env):
    assert unset_app_env.APP_ENV == "production"
    assert unset_app_env.IS_DEVELOPMENT is False
    client.post("/api/email-otp/send", json={"email": EMAIL})

    resp = client.get(f"/api/email-otp/status/{EMAIL}")

    assert resp.status_code == 403
    assert "otp" not in resp.json()

    sender.fail_with = RuntimeError("smtp auth failed")
    failed = client.post("/api/email-otp/send", json={"email": EMAIL})

    assert failed.status_code == 500
    assert "error" not in failed.json()
    assert "previewCode" not in failed.json()
