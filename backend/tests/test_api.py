import io
from datetime import datetime, timedelta

import pytest
from PIL import Image

from fileshare import crud
from fileshare.core.config import settings
from fileshare.utils.clock import utcnow

API = settings.API_V1_STR


def register(client, username, password="password"):
    response = client.post(
        f"{API}/users/",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()


def login(client, username, password="password"):
    response = client.post(f"{API}/login/access-token", data={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def upload(client, headers, content=b"hello world", name="hello.txt", mime_type="text/plain"):
    response = client.post(f"{API}/files/upload", files={"file": (name, content, mime_type)}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def create_share(client, headers, file_id, **options):
    response = client.post(f"{API}/shares/", json={"file_id": file_id, **options}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def admin_headers(client):
    register(client, "admin")
    return login(client, "admin")


@pytest.fixture
def alice_headers(client, admin_headers):
    register(client, "alice")
    return login(client, "alice")


@pytest.fixture
def bob_headers(client, admin_headers):
    register(client, "bob")
    return login(client, "bob")


def test_first_user_becomes_admin(client):
    assert register(client, "first")["role"] == "admin"
    assert register(client, "second")["role"] == "user"

    duplicate = client.post(
        f"{API}/users/", json={"username": "first", "email": "other@example.com", "password": "password"}
    )
    assert duplicate.status_code == 400


def test_login_and_me(client, alice_headers):
    me = client.get(f"{API}/users/me", headers=alice_headers)
    assert me.status_code == 200
    assert me.json()["username"] == "alice"
    assert "password_hash" not in me.json()

    bad = client.post(f"{API}/login/access-token", data={"username": "alice", "password": "nope"})
    assert bad.status_code == 400

    anonymous = client.get(f"{API}/users/me")
    assert anonymous.status_code == 401


def test_change_password(client, alice_headers):
    response = client.put(
        f"{API}/users/me/password",
        json={"current_password": "password", "new_password": "new-password"},
        headers=alice_headers,
    )
    assert response.status_code == 200
    login(client, "alice", "new-password")

    wrong = client.put(
        f"{API}/users/me/password",
        json={"current_password": "password", "new_password": "another"},
        headers=alice_headers,
    )
    assert wrong.status_code == 400


def test_upload_list_and_download(client, alice_headers):
    record = upload(client, alice_headers, content=b"abc", name="notes.txt")
    assert record["size_bytes"] == 3
    assert record["mime_type"] == "text/plain"

    listing = client.get(f"{API}/files", headers=alice_headers)
    assert [f["id"] for f in listing.json()] == [record["id"]]

    download = client.get(f"{API}/files/{record['id']}/download", headers=alice_headers)
    assert download.status_code == 200
    assert download.content == b"abc"
    assert "notes.txt" in download.headers["content-disposition"]

    me = client.get(f"{API}/users/me", headers=alice_headers).json()
    assert me["quota_used"] == 3


def test_trash_restore_and_purge(client, alice_headers):
    record = upload(client, alice_headers)

    assert client.delete(f"{API}/files/{record['id']}", headers=alice_headers).status_code == 200
    assert client.get(f"{API}/files/{record['id']}", headers=alice_headers).status_code == 404
    trash = client.get(f"{API}/files", params={"trash": True}, headers=alice_headers).json()
    assert [f["id"] for f in trash] == [record["id"]]

    assert client.post(f"{API}/files/{record['id']}/restore", headers=alice_headers).status_code == 200
    assert client.get(f"{API}/files/{record['id']}", headers=alice_headers).status_code == 200

    assert client.delete(f"{API}/files/{record['id']}/purge", headers=alice_headers).status_code == 200
    assert client.get(f"{API}/files/{record['id']}", headers=alice_headers).status_code == 404
    assert client.get(f"{API}/users/me", headers=alice_headers).json()["quota_used"] == 0


def test_other_users_files_are_hidden(client, alice_headers, bob_headers):
    record = upload(client, alice_headers)

    assert client.get(f"{API}/files/{record['id']}", headers=bob_headers).status_code == 403
    assert client.delete(f"{API}/files/{record['id']}", headers=bob_headers).status_code == 403
    assert client.get(f"{API}/files", headers=bob_headers).json() == []


def test_permission_grant_and_revoke(client, alice_headers, bob_headers):
    record = upload(client, alice_headers)
    bob = client.get(f"{API}/users/me", headers=bob_headers).json()

    granted = client.post(
        f"{API}/files/{record['id']}/permissions",
        json={"user_id": bob["id"], "permission_type": "read"},
        headers=alice_headers,
    )
    assert granted.status_code == 200
    assert client.get(f"{API}/files/{record['id']}", headers=bob_headers).status_code == 200

    invalid = client.post(
        f"{API}/files/{record['id']}/permissions",
        json={"user_id": bob["id"], "role": "user", "permission_type": "read"},
        headers=alice_headers,
    )
    assert invalid.status_code == 400

    revoked = client.delete(
        f"{API}/files/{record['id']}/permissions/{granted.json()['id']}", headers=alice_headers
    )
    assert revoked.status_code == 200
    assert client.get(f"{API}/files/{record['id']}", headers=bob_headers).status_code == 403


def test_share_download_flow(client, alice_headers):
    record = upload(client, alice_headers, content=b"shared content")
    share = create_share(client, alice_headers, record["id"], download_limit=2)
    token = share["token"]

    assert share["share_url"].endswith(f"/share/{token}")
    assert share["requires_password"] is False
    assert "password_hash" not in share

    info = client.get(f"{API}/shares/public/{token}")
    assert info.status_code == 200
    assert info.json()["file_name"] == "hello.txt"
    assert info.json()["download_count"] == 0

    for _ in range(2):
        download = client.post(f"{API}/shares/public/{token}/download")
        assert download.status_code == 200
        assert download.content == b"shared content"

    exhausted = client.post(f"{API}/shares/public/{token}/download")
    assert exhausted.status_code == 410

    updated = client.put(f"{API}/shares/{share['id']}", json={"download_limit": 5}, headers=alice_headers)
    assert updated.status_code == 200
    assert updated.json()["download_limit"] == 5

    assert client.post(f"{API}/shares/public/{token}/download").status_code == 200
    assert client.get(f"{API}/shares/public/{token}").json()["download_count"] == 3


def test_password_protected_share(client, alice_headers):
    record = upload(client, alice_headers)
    token = create_share(client, alice_headers, record["id"], password="secret123")["token"]

    assert client.get(f"{API}/shares/public/{token}").status_code == 403
    assert client.get(f"{API}/shares/public/{token}", params={"password": "secret123"}).status_code == 200

    assert client.post(f"{API}/shares/public/{token}/download").status_code == 403
    assert client.post(f"{API}/shares/public/{token}/download", json={"password": "wrong"}).status_code == 403
    download = client.post(f"{API}/shares/public/{token}/download", json={"password": "secret123"})
    assert download.status_code == 200


def test_unknown_token(client):
    assert client.get(f"{API}/shares/public/{'0' * 32}").status_code == 404
    assert client.post(f"{API}/shares/public/{'0' * 32}/download").status_code == 404


def test_expired_share(db, client, alice_headers, admin_headers):
    record = upload(client, alice_headers)
    share = create_share(client, alice_headers, record["id"])
    crud.share.update_fields(db, share_id=share["id"], fields={"expires_at": datetime(2000, 1, 1)})

    assert client.get(f"{API}/shares/public/{share['token']}").status_code == 410

    cleanup = client.post(f"{API}/admin/shares/cleanup", headers=admin_headers)
    assert cleanup.json() == {"expired": 1}
    assert client.get(f"{API}/shares/public/{share['token']}").status_code == 404
    assert client.get(f"{API}/shares/", headers=alice_headers).json()["total"] == 0


def test_strict_share_errors_hide_reason(db, client, alice_headers, monkeypatch):
    monkeypatch.setattr(settings, "STRICT_SHARE_ERRORS", True)
    record = upload(client, alice_headers)
    expired = create_share(client, alice_headers, record["id"])
    crud.share.update_fields(db, share_id=expired["id"], fields={"expires_at": datetime(2000, 1, 1)})
    protected = create_share(client, alice_headers, record["id"], password="secret123")

    response = client.get(f"{API}/shares/public/{expired['token']}")
    assert response.status_code == 404
    assert response.json() == {"detail": "This link is no longer valid"}
    assert client.get(f"{API}/shares/public/{protected['token']}").status_code == 403


def test_share_management_is_owner_only(client, alice_headers, bob_headers, admin_headers):
    record = upload(client, alice_headers)
    share = create_share(client, alice_headers, record["id"])

    assert client.post(f"{API}/shares/", json={"file_id": record["id"]}, headers=bob_headers).status_code == 403
    assert client.put(
        f"{API}/shares/{share['id']}", json={"download_limit": 1}, headers=bob_headers
    ).status_code == 403
    assert client.delete(f"{API}/shares/{share['id']}", headers=bob_headers).status_code == 403

    assert client.put(
        f"{API}/shares/{share['id']}", json={"download_limit": 1}, headers=admin_headers
    ).status_code == 200


def test_share_update_validation(client, alice_headers):
    record = upload(client, alice_headers)
    share = create_share(client, alice_headers, record["id"])

    for payload in ({"token": "x" * 32}, {"download_count": 0}, {}, {"download_limit": 0}):
        response = client.put(f"{API}/shares/{share['id']}", json=payload, headers=alice_headers)
        assert response.status_code == 400, payload

    past = (utcnow() - timedelta(days=1)).isoformat()
    response = client.post(
        f"{API}/shares/", json={"file_id": record["id"], "expires_at": past}, headers=alice_headers
    )
    assert response.status_code == 400


def test_delete_share(client, alice_headers):
    record = upload(client, alice_headers)
    share = create_share(client, alice_headers, record["id"])

    assert client.delete(f"{API}/shares/{share['id']}", headers=alice_headers).status_code == 200
    assert client.delete(f"{API}/shares/{share['id']}", headers=alice_headers).status_code == 200
    assert client.get(f"{API}/shares/public/{share['token']}").status_code == 404


def test_list_shares_and_analytics(client, alice_headers):
    record = upload(client, alice_headers)
    for _ in range(3):
        create_share(client, alice_headers, record["id"])

    listing = client.get(f"{API}/shares/", params={"page": 1, "limit": 2}, headers=alice_headers).json()
    assert listing["total"] == 3
    assert listing["pages"] == 2
    assert len(listing["items"]) == 2

    analytics = client.get(f"{API}/shares/analytics", headers=alice_headers).json()
    assert sum(row["shares_created"] for row in analytics) == 3


def test_preview_thumbnail(client, alice_headers):
    image = Image.new("RGB", (800, 600), color="red")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    record = upload(client, alice_headers, content=buffer.getvalue(), name="photo.png", mime_type="image/png")
    token = create_share(client, alice_headers, record["id"], download_limit=1)["token"]

    response = client.get(f"{API}/shares/public/{token}/preview", params={"thumbnail": True})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert max(Image.open(io.BytesIO(response.content)).size) <= 200

    # Previews never use up downloads
    assert client.post(f"{API}/shares/public/{token}/download").status_code == 200


def test_preview_disabled(client, alice_headers):
    record = upload(client, alice_headers)
    token = create_share(client, alice_headers, record["id"], allow_preview=False)["token"]

    assert client.get(f"{API}/shares/public/{token}/preview").status_code == 403


def test_admin_endpoints(client, admin_headers, alice_headers):
    upload(client, alice_headers)

    assert client.get(f"{API}/admin/files", headers=alice_headers).status_code == 403
    assert len(client.get(f"{API}/admin/files", headers=admin_headers).json()) == 1
    assert client.get(f"{API}/admin/stats", headers=admin_headers).json() == {"total_files": 1, "total_size": 11}

    logs = client.get(f"{API}/admin/logs", params={"action": "file_upload"}, headers=admin_headers).json()
    assert logs["total"] == 1

    purged = client.delete(f"{API}/admin/logs", params={"older_than_days": 0}, headers=admin_headers)
    assert purged.status_code == 200
    assert purged.json()["deleted"] >= 1


def test_admin_can_deactivate_user(client, admin_headers, alice_headers):
    alice = client.get(f"{API}/users/me", headers=alice_headers).json()

    response = client.put(f"{API}/users/{alice['id']}", json={"is_active": False}, headers=admin_headers)
    assert response.status_code == 200
    assert client.get(f"{API}/users/me", headers=alice_headers).status_code == 400


def test_purged_file_share_does_not_serve_later_uploads(client, alice_headers, bob_headers):
    record = upload(client, alice_headers, content=b"alice data", name="alice.txt")
    token = create_share(client, alice_headers, record["id"])["token"]

    assert client.delete(f"{API}/files/{record['id']}/purge", headers=alice_headers).status_code == 200
    upload(client, bob_headers, content=b"bob secret", name="bob-secret.txt")

    assert client.get(f"{API}/shares/public/{token}").status_code == 404
    assert client.post(f"{API}/shares/public/{token}/download").status_code == 404


def test_oversized_image_preview_falls_back_to_raw_bytes(client, alice_headers, monkeypatch):
    image = Image.new("RGB", (800, 600), color="blue")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    record = upload(client, alice_headers, content=buffer.getvalue(), name="huge.png", mime_type="image/png")
    token = create_share(client, alice_headers, record["id"])["token"]
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    response = client.get(f"{API}/shares/public/{token}/preview", params={"thumbnail": True})

    assert response.status_code == 200
    assert response.content == buffer.getvalue()
    assert response.headers["content-disposition"] == "inline"
