import json

import pytest
from fastapi.testclient import TestClient

from attachvault.api.main import create_app
from attachvault.infrastructure.attachments.factory import build_attachment_services
from attachvault.infrastructure.settings import Settings

from conftest import FakeAuthorizer, RecordingPromoter, entry


class Filenames:
    async def resolve_filename(self, resource_key, attachment_key):
        return "a.png" if attachment_key == "k1" else None


class Lookup:
    async def get_attachment(self, resource_key, attachment_key):
        if attachment_key == "k1":
            return {"key": "k1", "name": "a.png"}
        return None


def _client(store, promoter=None, authorizer=None, lookup=True, **settings) -> TestClient:
    settings = Settings(s3_bucket="attachments", **settings)
    services = build_attachment_services(
        "/widgets",
        promoter or RecordingPromoter(),
        store=store,
        settings=settings,
        authorizer=authorizer,
        filenames=Filenames(),
        lookup=Lookup() if lookup else None,
    )
    return TestClient(create_app(services, settings=settings))


def _upload(client: TestClient, manifest, files=(("a.png", b"png bytes"),)):
    return client.post(
        "/widgets/attachments",
        data={"body": json.dumps(manifest)},
        files=[("file", (name, data, "application/octet-stream")) for name, data in files],
    )


class TestUploadEndpoint:
    """Tests for POST {type}/attachments."""

    def test_upload(self, store) -> None:
        with _client(store) as client:
            response = _upload(client, [entry("a.png", "k1")])

        assert response.status_code == 200
        assert response.json() == [{"status": 200, "href": "/widgets/w1/attachments/k1"}]
        assert store.objects["w1-a.png"].data == b"png bytes"

    def test_missing_manifest(self, store) -> None:
        with _client(store) as client:
            response = client.post("/widgets/attachments", files=[("file", ("a.png", b"x", "image/png"))])

        assert response.status_code == 409
        body = response.json()
        assert body["status"] == 409
        assert body["errors"][0]["code"] == "missing.body"

    def test_promotion_failure_lists_errors(self, store) -> None:
        with _client(store, promoter=RecordingPromoter(fail_keys=["k1"])) as client:
            response = _upload(client, [entry("a.png", "k1")])

        assert response.status_code == 500
        [error] = response.json()["errors"]
        assert error["code"] == "promotion.failed"
        assert error["attachments"] == ["k1"]
        assert store.objects == {}

    def test_forbidden(self, store) -> None:
        with _client(store, authorizer=FakeAuthorizer(deny=True)) as client:
            response = _upload(client, [entry("a.png", "k1")])
        assert response.status_code == 403
        assert response.json()["errors"][0]["code"] == "forbidden"

    def test_conflict(self, store) -> None:
        store.put_object("w1-a.png", b"theirs", {"attachmentkey": "other"})
        with _client(store) as client:
            response = _upload(client, [entry("a.png", "k1")])
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "file.already.exists"

    def test_policy_from_settings(self, store) -> None:
        promoter = RecordingPromoter()
        with _client(store, promoter=promoter, promotion_policy="grouped") as client:
            _upload(
                client,
                [entry("a.png", "k1"), entry("b.png", "k2")],
                files=(("a.png", b"a"), ("b.png", b"b")),
            )
        assert promoter.calls == [["k1", "k2"]]


class TestCopyEndpoint:
    def test_copy(self, store) -> None:
        store.put_object("w0-a.png", b"original", {"attachmentkey": "k0"})
        with _client(store) as client:
            response = client.post(
                "/widgets/attachments/copy",
                json=[entry(None, "k2", fileHref="/widgets/w0/attachments/a.png")],
            )
        assert response.status_code == 200
        assert response.json() == [{"status": 200, "href": "/widgets/w1/attachments/k2"}]
        assert store.objects["w1-a.png"].metadata == {"attachmentkey": "k2"}

    def test_invalid_json(self, store) -> None:
        with _client(store) as client:
            response = client.post("/widgets/attachments/copy", content=b"{nope")
        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "invalid.body"


class TestGetEndpoint:
    """Tests for GET {type}/{key}/attachments/{name}."""

    def test_download(self, store) -> None:
        store.put_object("w1-my_photo.png", b"0123456789")
        with _client(store) as client:
            response = client.get("/widgets/w1/attachments/my%20photo.png")

        assert response.status_code == 200
        assert response.content == b"0123456789"
        assert response.headers["content-type"] == "image/png"
        assert "my%20photo.png" in response.headers["content-disposition"]

    def test_download_not_found(self, store) -> None:
        with _client(store) as client:
            response = client.get("/widgets/w1/attachments/gone.png")
        assert response.status_code == 404

    def test_json_record(self, store) -> None:
        with _client(store) as client:
            response = client.get("/widgets/w1/attachments/k1")
        assert response.status_code == 200
        assert response.json() == {"key": "k1", "name": "a.png"}

    @pytest.mark.parametrize("name", ["k9", "nope"])
    def test_unknown_record(self, store, name) -> None:
        with _client(store) as client:
            response = client.get(f"/widgets/w1/attachments/{name}")
        assert response.status_code == 404


class TestAttachmentKeyRoundTrip:
    """Tests for uploads keyed by attachment key, served without a lookup."""

    def test_upload_then_download(self, store) -> None:
        with _client(store, lookup=False, permanent_key_source="attachment_key") as client:
            assert _upload(client, [entry("a.png", "k1")]).status_code == 200
            response = client.get("/widgets/w1/attachments/k1")

        assert list(store.objects) == ["w1-k1"]
        assert response.status_code == 200
        assert response.content == b"png bytes"
        assert response.headers["content-type"] == "image/png"

    def test_unknown_key_is_not_found(self, store) -> None:
        with _client(store, lookup=False, permanent_key_source="attachment_key") as client:
            response = client.get("/widgets/w1/attachments/k9")
        assert response.status_code == 404


class TestPresignedEndpoint:
    """Tests for GET {type}/attachments/presigned."""

    def test_presigned_form(self, store) -> None:
        with _client(store) as client:
            response = client.get("/widgets/attachments/presigned")

        assert response.status_code == 200
        body = response.json()
        assert body["url"] == "https://fake/attachments"
        assert body["fields"]["key"].startswith("tmp")
        assert store.calls_for("presign") == [body["fields"]["key"]]

    def test_keys_are_fresh(self, store) -> None:
        with _client(store) as client:
            first = client.get("/widgets/attachments/presigned").json()
            second = client.get("/widgets/attachments/presigned").json()
        assert first["fields"]["key"] != second["fields"]["key"]

    def test_forbidden(self, store) -> None:
        authorizer = FakeAuthorizer(deny=True)
        with _client(store, authorizer=authorizer) as client:
            response = client.get("/widgets/attachments/presigned")
        assert response.status_code == 403
        assert authorizer.calls == [(["/widgets"], "create")]
        assert store.calls_for("presign") == []

    def test_signing_failure(self, store) -> None:
        store.fail("presign")
        with _client(store) as client:
            response = client.get("/widgets/attachments/presigned")
        assert response.status_code == 500
        assert response.json()["errors"][0]["code"] == "presign.failed"


class TestDeleteEndpoint:
    def test_delete(self, store) -> None:
        store.put_object("w1-a.png", b"x", {"attachmentkey": "k1"})
        with _client(store) as client:
            response = client.delete("/widgets/w1/attachments/k1")
        assert response.status_code == 204
        assert store.objects == {}


def test_health(store) -> None:
    with _client(store) as client:
        response = client.get("/health")
    assert response.json()["status"] == "ok"
