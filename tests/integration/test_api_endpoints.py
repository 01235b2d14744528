import pytest
from fastapi.testclient import TestClient

from src.infrastructure.auth.session import SESSION_COOKIE_NAME, create_session
from src.infrastructure.database.repositories.party_repository import PartyStatus


@pytest.fixture(autouse=True)
def _local_storage_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("SUPABASE_STORAGE_LOCAL_DIR", str(tmp_path / "api-storage"))


@pytest.fixture()
def auth_header(session_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {session_token}"}


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json() == {"status": "healthy"}


def test_upload_photo(client, auth_header, make_image, party_id):
    files = {"file": ("guest.jpg", make_image(1200, 800), "image/jpeg")}
    r = client.post("/photos", headers=auth_header, files=files, data={"comment": "hello"})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["use_original_for_display"] is True
    assert body["display_path"] == body["original_path"]
    assert body["original_path"] == f"parties/{party_id}/original/{body['id']}.jpg"
    assert body["created_at"] is not None


def test_upload_with_session_cookie(make_image, session_token):
    from src.main import create_app

    with TestClient(create_app(), cookies={SESSION_COOKIE_NAME: session_token}) as cookie_client:
        files = {"file": ("guest.png", make_image(64, 48, fmt="PNG"), "image/png")}
        r = cookie_client.post("/photos", files=files)
    assert r.status_code == 201, r.text
    assert r.json()["original_path"].endswith(".png")


def test_upload_without_session(client, make_image):
    files = {"file": ("guest.jpg", make_image(), "image/jpeg")}
    r = client.post("/photos", files=files)
    assert r.status_code == 401
    assert r.json()["kind"] == "not_authenticated"


def test_upload_to_closed_party(client, parties, make_image):
    closed = parties.create(status=PartyStatus.CLOSED)
    headers = {"Authorization": f"Bearer {create_session(closed, 'u')}"}
    r = client.post("/photos", headers=headers, files={"file": ("a.jpg", make_image(), "image/jpeg")})
    assert r.status_code == 403
    assert r.json() == {"detail": "Party is not accepting photos", "kind": "party_not_accepting", "retryable": False}


def test_upload_unsupported_format(client, auth_header):
    r = client.post("/photos", headers=auth_header, files={"file": ("doc.pdf", b"%PDF-1.4", "application/pdf")})
    assert r.status_code == 400
    assert r.json()["kind"] == "unsupported_format"


def test_prepare_upload(client, auth_header, party_id):
    r = client.post("/photos/prepare-upload", headers=auth_header, json={"original_ext": "JPG", "create_display": True})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["original"]["path"] == f"parties/{party_id}/original/{body['photo_id']}.jpg"
    assert body["display"]["path"] == f"parties/{party_id}/display/{body['photo_id']}.jpg"
    assert 0 < body["expires_in"] <= 300


def test_sweep_dry_run(client, auth_header, make_image, party_id):
    client.post("/photos", headers=auth_header, files={"file": ("a.jpg", make_image(), "image/jpeg")})
    r = client.post(
        f"/parties/{party_id}/orphans/sweep", params={"dry_run": True}, headers={"X-Admin-Key": "test-admin-key"}
    )
    assert r.status_code == 200
    assert r.json()["orphans"] == []
    assert r.json()["dry_run"] is True


@pytest.mark.parametrize("headers", [{}, {"X-Admin-Key": "wrong"}])
def test_sweep_requires_admin_key(client, party_id, headers):
    r = client.post(f"/parties/{party_id}/orphans/sweep", headers=headers)
    assert r.status_code == 401


def test_sweep_disabled_without_configured_key(client, party_id, monkeypatch):
    monkeypatch.delenv("ADMIN_API_KEY")
    r = client.post(f"/parties/{party_id}/orphans/sweep", headers={"X-Admin-Key": "test-admin-key"})
    assert r.status_code == 403


def test_upload_over_absolute_limit_is_rejected(client, auth_header, make_image, monkeypatch):
    monkeypatch.setenv("ORIGINAL_ABSOLUTE_MAX_BYTES", "1024")
    r = client.post("/photos", headers=auth_header, files={"file": ("big.jpg", make_image(400, 300), "image/jpeg")})
    assert r.status_code == 413
    assert r.json()["kind"] == "image_too_large"


def _plan(client, auth_header, create_display):
    r = client.post(
        "/photos/prepare-upload", headers=auth_header, json={"original_ext": "jpg", "create_display": create_display}
    )
    assert r.status_code == 200, r.text
    return r.json()


def test_direct_upload_then_commit(client, auth_header, make_image, party_id):
    plan = _plan(client, auth_header, create_display=True)
    original, display = make_image(2400, 1600), make_image(1620, 1080, quality=80)

    for target, data in ((plan["original"], original), (plan["display"], display)):
        r = client.put(target["signed_url"], content=data, headers={"content-type": "image/jpeg"})
        assert r.status_code == 200, r.text

    r = client.post(
        f"/photos/{plan['photo_id']}/commit",
        headers=auth_header,
        json={"original_ext": "jpg", "has_display": True, "comment": " nice "},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["id"] == plan["photo_id"]
    assert body["original_path"] == plan["original"]["path"]
    assert body["display_path"] == plan["display"]["path"]
    assert body["original_bytes"] == len(original)
    assert body["display_bytes"] == len(display)

    again = client.post(
        f"/photos/{plan['photo_id']}/commit", headers=auth_header, json={"original_ext": "jpg", "has_display": True}
    )
    assert again.status_code == 201
    assert again.json()["id"] == body["id"]


def test_signed_url_is_single_use(client, auth_header):
    plan = _plan(client, auth_header, create_display=False)
    url = plan["original"]["signed_url"]

    assert client.put(url, content=b"first").status_code == 200
    assert client.put(url, content=b"second").status_code == 403
    assert client.put(url.split("?")[0] + "?token=bogus", content=b"x").status_code == 403


def test_commit_with_missing_display_cleans_up(client, auth_header, make_image, tmp_path):
    plan = _plan(client, auth_header, create_display=True)
    client.put(plan["original"]["signed_url"], content=make_image(), headers={"content-type": "image/jpeg"})

    r = client.post(
        f"/photos/{plan['photo_id']}/commit", headers=auth_header, json={"original_ext": "jpg", "has_display": True}
    )

    assert r.status_code == 503
    assert r.json()["kind"] == "transfer_failed"
    assert not (tmp_path / "api-storage" / plan["original"]["path"]).exists()


def test_commit_rejects_malformed_photo_id(client, auth_header):
    r = client.post("/photos/not-a-uuid/commit", headers=auth_header, json={"original_ext": "jpg"})
    assert r.status_code == 422
