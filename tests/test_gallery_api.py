"""
Gallery / images / settings API tests
- GET /api/gallery, PUT /api/gallery/prompt, POST /api/gallery/generate
- POST /api/gallery/{id}/refine, PATCH /api/gallery/{id}/name, DELETE /api/gallery/{id}
- GET /api/images/{id}/download, POST /api/images/{id}/upload
- GET/PUT/DELETE /api/settings/s3
"""
from urllib.parse import quote

from app.services import s3_upload
from app.services.gallery import MAX_STORED_IMAGES
from tests.fakes import PNG_BYTES, TEST_EMAIL, TEST_PASSWORD


def generate(client, headers, prompt):
    resp = client.post("/api/gallery/generate", headers=headers, json={"prompt": prompt})
    assert resp.status_code == 200, f"Generate failed: {resp.text}"
    return resp.json()


class TestGalleryFlow:

    def test_empty_gallery(self, client, auth_headers):
        data = client.get("/api/gallery", headers=auth_headers).json()
        assert data["images"] == []
        assert data["prompt"] == ""
        assert data["refinement_target"] is None

    def test_generate_then_refine_in_place(self, client, auth_headers, fake_ai):
        data = generate(client, auth_headers, "a red fox in snow")
        assert data["notifications"][0]["title"] == "Image Generated!"
        fox = data["images"][0]
        assert fox["prompt"] == "a red fox in snow"
        assert fox["url"].startswith("data:image/png")
        assert fox["aiHint"] == "a red"
        assert data["prompt"] == ""

        started = client.post(f"/api/gallery/{fox['id']}/refine", headers=auth_headers).json()
        assert started["refinement_target"]["id"] == fox["id"]

        data = generate(client, auth_headers, "make it night time")
        assert len(data["images"]) == 1
        refined = data["images"][0]
        assert refined["prompt"] == "a red fox in snow"
        assert refined["url"].startswith("data:image/jpeg")
        assert data["refinement_target"] is None

    def test_empty_prompt_notification(self, client, auth_headers, fake_ai):
        data = generate(client, auth_headers, "  ")
        assert data["notifications"][0]["title"] == "Prompt empty"
        assert data["notifications"][0]["variant"] == "destructive"
        assert fake_ai.calls == []

    def test_refine_prompt_and_select_suggestion(self, client, auth_headers):
        data = client.post("/api/gallery/refine-prompt", headers=auth_headers, json={"prompt": "a castle"}).json()
        suggestions = data["refined_data"]["suggestedPrompts"]
        assert data["refined_data"]["refinedPrompt"] == "a castle, highly detailed"

        data = client.post(
            "/api/gallery/select-suggestion", headers=auth_headers, json={"suggestion": suggestions[1]}
        ).json()
        assert data["prompt"] == suggestions[1]
        assert data["refined_data"] is None

    def test_rename_and_delete(self, client, auth_headers):
        generate(client, auth_headers, "first")
        data = generate(client, auth_headers, "second")
        second_id = data["images"][0]["id"]

        data = client.patch(f"/api/gallery/{second_id}/name", headers=auth_headers, json={"name": "keeper"}).json()
        assert data["images"][0]["id"] == second_id
        assert data["images"][0]["name"] == "keeper"

        data = client.delete(f"/api/gallery/{second_id}", headers=auth_headers).json()
        assert [img["prompt"] for img in data["images"]] == ["first"]

    def test_served_gallery_is_capped(self, client, auth_headers):
        for i in range(15):
            generate(client, auth_headers, f"prompt {i}")
        data = client.get("/api/gallery", headers=auth_headers).json()
        assert len(data["images"]) == MAX_STORED_IMAGES
        assert data["images"][0]["prompt"] == "prompt 14"
        assert data["images"][-1]["prompt"] == "prompt 5"

    def test_unknown_image(self, client, auth_headers):
        assert client.get("/api/gallery/missing", headers=auth_headers).status_code == 404
        assert client.post("/api/gallery/missing/refine", headers=auth_headers).status_code == 404

    def test_gallery_survives_new_session(self, client, auth_headers, db):
        generate(client, auth_headers, "persist me")
        client.post("/api/auth/logout", headers=auth_headers)

        token = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD}).json()["access_token"]
        data = client.get("/api/gallery", headers={"Authorization": f"Bearer {token}"}).json()
        assert [img["prompt"] for img in data["images"]] == ["persist me"]


class TestStatelessAI:

    def test_generate_image_endpoint(self, client, auth_headers):
        resp = client.post("/api/ai/generate-image", headers=auth_headers, json={"prompt": "a lighthouse"})
        assert resp.status_code == 200
        assert resp.json()["url"].startswith("data:")

    def test_generate_image_rejects_empty(self, client, auth_headers):
        resp = client.post("/api/ai/generate-image", headers=auth_headers, json={"prompt": ""})
        assert resp.status_code == 400

    def test_refine_prompt_blank(self, client, auth_headers, fake_ai):
        resp = client.post("/api/ai/refine-prompt", headers=auth_headers, json={"prompt": " "})
        assert resp.json() == {"refinedPrompt": "", "suggestedPrompts": []}
        assert fake_ai.calls == []


class TestDownloadAndUpload:

    def test_download_requires_name(self, client, auth_headers):
        image = generate(client, auth_headers, "a red fox")["images"][0]
        client.patch(f"/api/gallery/{image['id']}/name", headers=auth_headers, json={"name": ""})

        resp = client.get(f"/api/images/{image['id']}/download", headers=auth_headers)
        assert resp.status_code == 400

    def test_download_returns_bytes(self, client, auth_headers):
        image = generate(client, auth_headers, "a red fox")["images"][0]
        resp = client.get(f"/api/images/{image['id']}/download", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.content == PNG_BYTES
        assert resp.headers["content-type"] == "image/png"
        assert 'filename="a red fox.png"' in resp.headers["content-disposition"]

    def test_download_non_ascii_name(self, client, auth_headers):
        image = generate(client, auth_headers, "붉은 여우 in snow")["images"][0]
        resp = client.get(f"/api/images/{image['id']}/download", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.content == PNG_BYTES
        disposition = resp.headers["content-disposition"]
        assert f"filename*=UTF-8''{quote('붉은 여우 in snow.png', safe='')}" in disposition
        assert 'filename="__ __ in snow.png"' in disposition

    def test_download_strips_quotes_and_control_chars(self, client, auth_headers):
        image = generate(client, auth_headers, "a red fox")["images"][0]
        client.patch(
            f"/api/gallery/{image['id']}/name",
            headers=auth_headers,
            json={"name": 'fox"\r\nX-Injected: 1'},
        )
        resp = client.get(f"/api/images/{image['id']}/download", headers=auth_headers)
        assert resp.status_code == 200
        assert "x-injected" not in resp.headers
        assert 'filename="foxX-Injected: 1.png"' in resp.headers["content-disposition"]


    def test_upload_without_config(self, client, auth_headers):
        image = generate(client, auth_headers, "a red fox")["images"][0]
        data = client.post(f"/api/images/{image['id']}/upload", headers=auth_headers).json()
        assert data["success"] is False
        assert "not available" in data["message"]

    def test_upload_with_saved_config(self, client, auth_headers, monkeypatch):
        puts = []

        class RecordingClient:
            def put_object(self, **kwargs):
                puts.append(kwargs)
                return {}

        monkeypatch.setattr(s3_upload, "make_s3_client", lambda endpoint, config: RecordingClient())

        config = {
            "url": "minio.local:9000",
            "accessKeyId": "minio",
            "secretAccessKey": "minio-secret",
            "bucketName": "art",
            "prefix": "imaginarium",
        }
        saved = client.put("/api/settings/s3", headers=auth_headers, json=config).json()
        assert saved["success"] is True
        loaded = client.get("/api/settings/s3", headers=auth_headers).json()
        assert loaded["config"]["bucketName"] == "art"

        image = generate(client, auth_headers, "a red fox")["images"][0]
        data = client.post(f"/api/images/{image['id']}/upload", headers=auth_headers).json()
        assert data["success"] is True, data["message"]
        assert data["url"] == "http://minio.local:9000/art/imaginarium/a red fox.png"
        assert puts[0]["Key"] == "imaginarium/a red fox.png"
        assert puts[0]["ContentType"] == "image/png"

        assert client.delete("/api/settings/s3", headers=auth_headers).json()["success"] is True
        assert client.get("/api/settings/s3", headers=auth_headers).json()["config"] is None
