import io
from datetime import datetime, timedelta

import pytest

from arena.services import storage_service
from arena.utils.exceptions import AuthorizationError, ValidationError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _upload(client, headers, bucket="proofs", content=PNG, filename="receipt.png",
            mimetype="image/png", **form):
    data = {"file": (io.BytesIO(content), filename, mimetype)}
    data.update(form)
    return client.post(
        f"/api/v1/storage/{bucket}",
        data=data,
        headers=headers,
        content_type="multipart/form-data",
    )


def test_proof_upload_returns_a_working_signed_url(client, player, auth_headers):
    res = _upload(client, auth_headers(player))
    assert res.status_code == 201
    body = res.get_json()
    assert body["path"].startswith(f"{player.id}/")
    assert "url" not in body

    res = client.get(body["signed_url"])
    assert res.status_code == 200
    assert res.data == PNG


def test_explicit_path_is_kept_under_the_owner_folder(client, player, auth_headers):
    res = _upload(client, auth_headers(player), path="jan/receipt.png")
    assert res.get_json()["path"] == f"{player.id}/jan/receipt.png"


def test_proofs_are_not_public(client, player, auth_headers):
    path = _upload(client, auth_headers(player)).get_json()["path"]
    res = client.get(f"/api/v1/storage/public/proofs/{path}")
    assert res.status_code == 403


def test_avatar_upload_gets_a_public_url(client, player, auth_headers):
    res = _upload(client, auth_headers(player), bucket="avatars", filename="me.png")
    assert res.status_code == 201
    url = res.get_json()["url"]
    assert "/api/v1/storage/public/avatars/" in url
    assert client.get(url).status_code == 200


def test_only_staff_upload_covers(client, player, moderator, auth_headers):
    assert _upload(client, auth_headers(player), bucket="covers").status_code == 403
    assert _upload(client, auth_headers(moderator), bucket="covers").status_code == 201


def test_unknown_bucket_is_404(client, player, auth_headers):
    res = _upload(client, auth_headers(player), bucket="secrets")
    assert res.status_code == 404


def test_rejects_non_image_uploads(client, player, auth_headers):
    res = _upload(client, auth_headers(player), content=b"%PDF-1.4", filename="r.pdf", mimetype="application/pdf")
    assert res.status_code == 422
    assert res.get_json()["error"]["code"] == "UNSUPPORTED_FILE_TYPE"


def test_rejects_oversized_uploads(app, client, player, auth_headers):
    app.config["MAX_UPLOAD_BYTES"] = 16
    res = _upload(client, auth_headers(player))
    assert res.status_code == 422
    assert res.get_json()["error"]["code"] == "FILE_TOO_LARGE"


def test_rejects_empty_uploads(client, player, auth_headers):
    res = _upload(client, auth_headers(player), content=b"")
    assert res.status_code == 422


def test_missing_file_field(client, player, auth_headers):
    res = client.post(
        "/api/v1/storage/proofs",
        data={"path": "x.png"},
        headers=auth_headers(player),
        content_type="multipart/form-data",
    )
    assert res.status_code == 422
    assert res.get_json()["error"]["details"]["field"] == "file"


def test_deposit_with_own_screenshot(client, player, auth_headers, deposit_payload):
    path = _upload(client, auth_headers(player)).get_json()["path"]
    res = client.post(
        "/api/v1/wallet/deposits",
        json=deposit_payload(screenshot_path=path),
        headers=auth_headers(player),
    )
    assert res.status_code == 201
    assert res.get_json()["deposit"]["screenshot_path"] == path


def test_deposit_cannot_reference_another_users_screenshot(client, player, make_user, auth_headers, deposit_payload):
    other = make_user()
    path = _upload(client, auth_headers(other)).get_json()["path"]

    res = client.post(
        "/api/v1/wallet/deposits",
        json=deposit_payload(screenshot_path=path),
        headers=auth_headers(player),
    )
    assert res.status_code == 403


def test_reviewer_sees_a_signed_screenshot_url(client, admin, player, auth_headers, deposit_payload):
    path = _upload(client, auth_headers(player)).get_json()["path"]
    dep_id = client.post(
        "/api/v1/wallet/deposits",
        json=deposit_payload(screenshot_path=path),
        headers=auth_headers(player),
    ).get_json()["deposit"]["id"]

    res = client.get(f"/api/v1/admin/wallet/deposits/{dep_id}", headers=auth_headers(admin))
    url = res.get_json()["deposit"]["screenshot_url"]
    assert "/api/v1/storage/signed/" in url
    assert client.get(url).data == PNG


def test_signed_urls_for_others_proofs_need_staff(client, player, moderator, make_user, auth_headers):
    other = make_user()
    path = _upload(client, auth_headers(other)).get_json()["path"]

    res = client.post("/api/v1/storage/proofs/signed-url", json={"path": path}, headers=auth_headers(player))
    assert res.status_code == 403

    res = client.post("/api/v1/storage/proofs/signed-url", json={"path": path}, headers=auth_headers(moderator))
    assert res.status_code == 200


@pytest.mark.parametrize("expires_in", ["abc", [60], -5])
def test_signed_url_rejects_bad_expiry(client, player, auth_headers, expires_in):
    path = _upload(client, auth_headers(player)).get_json()["path"]
    res = client.post(
        "/api/v1/storage/proofs/signed-url",
        json={"path": path, "expires_in": expires_in},
        headers=auth_headers(player),
    )
    assert res.status_code == 422
    assert res.get_json()["error"]["details"]["field"] == "expires_in"


def test_signed_url_with_custom_expiry(client, player, auth_headers):
    path = _upload(client, auth_headers(player)).get_json()["path"]
    res = client.post(
        "/api/v1/storage/proofs/signed-url",
        json={"path": path, "expires_in": "120"},
        headers=auth_headers(player),
    )
    assert res.status_code == 200
    assert client.get(res.get_json()["signed_url"]).data == PNG


def test_tampered_token_is_refused(client, player, auth_headers):
    url = _upload(client, auth_headers(player)).get_json()["signed_url"]
    res = client.get(url + "x")
    assert res.status_code == 403
    assert res.get_json()["error"]["code"] == "INVALID_SIGNATURE"


def test_signed_url_expires(app, monkeypatch):
    class _Later(datetime):
        @classmethod
        def now(cls, tz=None):
            return datetime.now(tz) + timedelta(hours=2)

    with app.test_request_context():
        url = storage_service.create_signed_url("proofs", "someone/receipt.png", expires_in=3600)
        token = url.rsplit("/", 1)[1]
        assert storage_service.resolve_signed_token(token) == ("proofs", "someone/receipt.png")

        monkeypatch.setattr(storage_service, "datetime", _Later)
        with pytest.raises(AuthorizationError) as exc:
            storage_service.resolve_signed_token(token)
        assert exc.value.code == "SIGNED_URL_EXPIRED"


@pytest.mark.parametrize("path", ["", "/", "../", "a/../.."])
def test_clean_path_rejects_traversal(app, path):
    with pytest.raises(ValidationError):
        storage_service.clean_path(path)


def test_clean_path_normalises_segments(app):
    assert storage_service.clean_path("/abc//my receipt.png") == "abc/my_receipt.png"
