"""
API tests for the citizen profile endpoints.
"""
from sqlmodel import select

from models.audit_log import AuditLog
from routes.citizen import PROFILE_PHOTO_MAX_BYTES

PNG = ("me.png", b"\x89PNG\r\n\x1a\nface", "image/png")


def upload_photo(client, headers, photo=PNG):
    return client.post("/citizen/profile/photo", files={"photo": photo}, headers=headers)


def stored_path(upload_dir, url):
    return upload_dir / url.removeprefix("/uploads/")


class TestProfilePhoto:

    def test_upload(self, client, session, citizen, auth_headers, upload_dir):
        response = upload_photo(client, auth_headers(citizen))

        assert response.status_code == 200
        url = response.json()["profile_photo_url"]
        assert url.startswith("/uploads/citizen-profiles/")
        assert stored_path(upload_dir, url).read_bytes() == PNG[1]
        assert session.exec(select(AuditLog).where(AuditLog.action == "updated_profile_photo")).first()

        profile = client.get("/citizen/profile", headers=auth_headers(citizen)).json()
        assert profile["profile_photo_url"] == url

    def test_replacing_removes_previous_file(self, client, citizen, auth_headers, upload_dir):
        first = upload_photo(client, auth_headers(citizen)).json()["profile_photo_url"]

        second = upload_photo(client, auth_headers(citizen), photo=("new.jpg", b"\xff\xd8new", "image/jpeg"))

        assert second.status_code == 200
        assert not stored_path(upload_dir, first).exists()
        assert stored_path(upload_dir, second.json()["profile_photo_url"]).exists()

    def test_images_only(self, client, citizen, auth_headers, upload_dir):
        response = upload_photo(client, auth_headers(citizen), photo=("me.mp4", b"video", "video/mp4"))

        assert response.status_code == 400
        assert not (upload_dir / "citizen-profiles").exists()

    def test_size_limit(self, client, session, citizen, auth_headers, upload_dir):
        oversized = ("big.jpg", b"\xff" * (PROFILE_PHOTO_MAX_BYTES + 1), "image/jpeg")

        response = upload_photo(client, auth_headers(citizen), photo=oversized)

        assert response.status_code == 400
        assert "5 MB" in response.json()["detail"]
        session.refresh(citizen)
        assert citizen.profile_photo_url is None

    def test_citizens_only(self, client, worker, auth_headers):
        assert upload_photo(client, auth_headers(worker)).status_code == 403

    def test_removed_citizen_photo_is_deleted(self, client, admin, citizen, auth_headers, upload_dir):
        url = upload_photo(client, auth_headers(citizen)).json()["profile_photo_url"]

        client.delete(f"/admin/citizens/{citizen.id}", headers=auth_headers(admin))

        assert not stored_path(upload_dir, url).exists()
