from app.models.story import Story
from app.services.storage import CONTENT, THUMBNAILS
from samples import PNG_BYTES, docx_bytes, pdf_bytes


def story_form(**overrides):
    data = {"title": "Si Kancil", "author": "Dongeng Rakyat", "description": "Kancil yang cerdik"}
    data.update(overrides)
    return data


def story_files(content=b"Pada suatu hari...", content_name="kancil.txt", thumbnail=True):
    files = {"content": (content_name, content, "text/plain")}
    if thumbnail:
        files["thumbnail"] = ("cover.png", PNG_BYTES, "image/png")
    return files


def create_story(client, headers, **kwargs):
    return client.post("/stories/create", data=story_form(), files=story_files(**kwargs), headers=headers)


def staged_files(storage):
    return [p for p in storage.tmp_dir.iterdir() if p.is_file()]


def test_create_story_from_txt(client, auth, storage):
    headers, user = auth

    resp = create_story(client, headers)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] is True
    data = body["data"]
    assert data["title"] == "Si Kancil"
    assert data["userId"] == user["id"]
    assert data["contentText"] == "Pada suatu hari..."
    assert data["wasTruncated"] is False
    assert data["contentLength"] == data["originalLength"] == len("Pada suatu hari...")
    assert data["thumbnailUrl"] == f"/story_thumbnails/{data['thumbnail']}"
    assert data["contentUrl"] == f"/story_content/{data['contentFile']}"
    assert data["contentFile"].endswith(".txt")
    assert data["user"]["email"] == user["email"]
    assert len(data["uuid"]) == 36

    assert storage.path_for(THUMBNAILS, data["thumbnail"]).exists()
    assert storage.path_for(CONTENT, data["contentFile"]).exists()
    assert staged_files(storage) == []

    # files are served statically
    assert client.get(data["thumbnailUrl"]).content == PNG_BYTES


def test_create_story_trims_fields(client, auth):
    headers, _ = auth
    resp = client.post(
        "/stories/create",
        data=story_form(title="  Timun Mas  ", author=" Rakyat "),
        files=story_files(),
        headers=headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["title"] == "Timun Mas"
    assert resp.json()["data"]["author"] == "Rakyat"


def test_create_story_from_docx_and_pdf(client, auth):
    headers, _ = auth

    resp = create_story(client, headers, content=docx_bytes("Bab 1", "Awal cerita"), content_name="bab.docx")
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"]["contentText"] == "Bab 1\n\nAwal cerita"

    resp = create_story(client, headers, content=pdf_bytes("Hello PDF"), content_name="bab.PDF")
    assert resp.status_code == 201, resp.text
    assert "Hello" in resp.json()["data"]["contentText"]


def test_create_requires_token(client):
    resp = create_story(client, {})

    assert resp.status_code == 401
    assert resp.json() == {"status": False, "code": "UNAUTHENTICATED", "message": resp.json()["message"]}


def test_create_rejects_invalid_token(client):
    resp = create_story(client, {"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHENTICATED"


def test_create_with_token_of_deleted_user(client, auth):
    headers, user = auth
    assert client.delete(f"/users/{user['id']}", headers=headers).status_code == 200

    resp = create_story(client, headers)

    assert resp.status_code == 404
    assert resp.json()["code"] == "USER_NOT_FOUND"


def test_create_rejects_blank_fields(client, auth, db):
    headers, _ = auth
    resp = client.post("/stories/create", data=story_form(author="   "), files=story_files(), headers=headers)

    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_FIELDS"
    assert db.query(Story).count() == 0


def test_create_without_content_file_leaves_nothing_behind(client, auth, db, storage):
    headers, _ = auth
    files = {"thumbnail": ("cover.png", PNG_BYTES, "image/png")}

    resp = client.post("/stories/create", data=story_form(), files=files, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_FILES"
    assert db.query(Story).count() == 0
    assert staged_files(storage) == []
    assert list((storage.root / THUMBNAILS).iterdir()) == []


def test_create_rejects_unsupported_content(client, auth, db, storage):
    headers, _ = auth
    resp = create_story(client, headers, content=b"# heading", content_name="notes.md")

    assert resp.status_code == 400
    assert resp.json()["code"] == "UNSUPPORTED_FORMAT"
    assert db.query(Story).count() == 0
    assert staged_files(storage) == []


def test_create_rejects_non_image_thumbnail(client, auth, db):
    headers, _ = auth
    files = {
        "thumbnail": ("cover.txt", b"not an image", "text/plain"),
        "content": ("kancil.txt", b"isi", "text/plain"),
    }
    resp = client.post("/stories/create", data=story_form(), files=files, headers=headers)

    assert resp.status_code == 400
    assert db.query(Story).count() == 0


def test_extraction_failure_cleans_up_staged_files(client, auth, db, storage):
    headers, _ = auth
    resp = create_story(client, headers, content=b"definitely not a docx", content_name="rusak.docx")

    assert resp.status_code == 400
    assert resp.json()["code"] == "EXTRACTION_ERROR"
    assert db.query(Story).count() == 0
    assert staged_files(storage) == []
    assert list((storage.root / CONTENT).iterdir()) == []


def test_failed_move_rolls_back_row(client, auth, db, storage, monkeypatch):
    from app.core.exceptions import StorageError
    from app.services.storage import LocalStorage

    headers, _ = auth
    original_place = LocalStorage.place

    def place(self, staged, kind):
        if kind == CONTENT:
            raise StorageError()
        return original_place(self, staged, kind)

    monkeypatch.setattr(LocalStorage, "place", place)

    resp = create_story(client, headers)

    assert resp.status_code == 500
    assert resp.json()["code"] == "STORAGE_ERROR"
    assert db.query(Story).count() == 0
    assert list((storage.root / THUMBNAILS).iterdir()) == []
    assert staged_files(storage) == []


def test_oversized_upload_is_rejected(client, auth, db, storage, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 10)
    headers, _ = auth

    resp = create_story(client, headers, content=b"x" * 100)

    assert resp.status_code == 400
    assert resp.json()["code"] == "FILE_TOO_LARGE"
    assert db.query(Story).count() == 0
    assert staged_files(storage) == []


def test_long_content_is_truncated_end_to_end(client, new_user):
    headers, _ = new_user("Penulis", "penulis@example.com")
    text = "a" * 70000

    resp = create_story(client, headers, content=text.encode())

    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    assert data["wasTruncated"] is True
    assert data["originalLength"] == 70000
    assert data["contentLength"] <= 65535

    fetched = client.get(f"/stories/read/{data['id']}").json()["data"]
    assert fetched["contentText"] == data["contentText"]
    assert fetched["contentText"].endswith("...[CONTENT TRUNCATED]")
    assert len(fetched["contentText"]) == data["contentLength"]


def test_read_story_is_public_and_404s(client, auth):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]

    resp = client.get(f"/stories/read/{story['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["contentText"] == "Pada suatu hari..."

    resp = client.get(f"/stories/s/{story['uuid']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == story["id"]

    resp = client.get("/stories/read/9999")
    assert resp.status_code == 404
    assert resp.json()["status"] is False
    assert resp.json()["code"] == "NOT_FOUND"


def test_list_and_search_stories(client, auth):
    headers, _ = auth
    client.post("/stories/create", data=story_form(title="Timun Mas", author="Rakyat"), files=story_files(), headers=headers)
    client.post("/stories/create", data=story_form(title="Laskar", author="Andrea"), files=story_files(), headers=headers)

    resp = client.get("/stories", headers=headers)
    assert resp.status_code == 200
    stories = resp.json()["data"]
    assert [s["title"] for s in stories] == ["Laskar", "Timun Mas"]
    assert "contentText" not in stories[0]

    resp = client.get("/stories", params={"search": "Andrea"}, headers=headers)
    assert [s["title"] for s in resp.json()["data"]] == ["Laskar"]

    assert client.get("/stories").status_code == 401


def test_my_stories_only_lists_own(client, auth, new_user):
    headers, _ = auth
    other_headers, _ = new_user("Budi", "budi@example.com")
    create_story(client, headers)
    client.post("/stories/create", data=story_form(title="Punya Budi"), files=story_files(), headers=other_headers)

    resp = client.get("/stories/c/me", headers=other_headers)

    assert resp.status_code == 200
    assert resp.json()["code"] == "STORIES_FETCHED"
    assert [s["title"] for s in resp.json()["data"]] == ["Punya Budi"]


def test_owner_updates_fields_partially(client, auth):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]

    resp = client.put(f"/stories/update/{story['id']}", data={"title": "Kancil Baru", "author": " "}, headers=headers)

    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["title"] == "Kancil Baru"
    assert data["author"] == "Dongeng Rakyat"
    assert data["description"] == "Kancil yang cerdik"
    assert data["contentText"] == "Pada suatu hari..."
    assert data["updatedAt"] >= story["updatedAt"]


def test_update_replaces_files_and_reextracts(client, auth, storage):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    files = {
        "thumbnail": ("new.png", PNG_BYTES, "image/png"),
        "content": ("baru.docx", docx_bytes("Versi kedua"), "application/octet-stream"),
    }

    resp = client.put(f"/stories/update/{story['id']}", files=files, headers=headers)

    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["contentText"] == "Versi kedua"
    assert data["contentFile"] != story["contentFile"]
    assert data["thumbnail"] != story["thumbnail"]
    assert storage.path_for(CONTENT, data["contentFile"]).exists()
    assert storage.path_for(THUMBNAILS, data["thumbnail"]).exists()
    assert not storage.path_for(CONTENT, story["contentFile"]).exists()
    assert not storage.path_for(THUMBNAILS, story["thumbnail"]).exists()
    assert staged_files(storage) == []


def test_update_with_long_content_respects_limit(client, auth):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    files = {"content": ("long.txt", b"b" * 80000, "text/plain")}

    data = client.put(f"/stories/update/{story['id']}", files=files, headers=headers).json()["data"]

    assert data["wasTruncated"] is True
    assert data["originalLength"] == 80000
    assert len(data["contentText"]) <= 65535


def test_update_extraction_failure_keeps_story(client, auth, storage):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    files = {
        "thumbnail": ("new.png", PNG_BYTES, "image/png"),
        "content": ("rusak.pdf", b"garbage", "application/pdf"),
    }

    resp = client.put(f"/stories/update/{story['id']}", data={"title": "Gagal"}, files=files, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["code"] == "EXTRACTION_ERROR"
    current = client.get(f"/stories/read/{story['id']}").json()["data"]
    assert current["title"] == "Si Kancil"
    assert current["thumbnail"] == story["thumbnail"]
    assert storage.path_for(THUMBNAILS, story["thumbnail"]).exists()
    assert storage.path_for(CONTENT, story["contentFile"]).exists()
    assert staged_files(storage) == []


def test_non_owner_cannot_update(client, auth, new_user):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    other_headers, _ = new_user("Budi", "budi@example.com")

    resp = client.put(f"/stories/update/{story['id']}", data={"title": "Dibajak"}, headers=other_headers)

    assert resp.status_code == 403
    assert resp.json()["code"] == "UNAUTHORIZED"
    assert client.get(f"/stories/read/{story['id']}").json()["data"]["title"] == "Si Kancil"


def test_admin_cannot_update_others_story(client, auth, admin_auth):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    admin_headers, _ = admin_auth

    resp = client.put(f"/stories/update/{story['id']}", data={"title": "Admin"}, headers=admin_headers)

    assert resp.status_code == 403


def test_update_missing_story(client, auth):
    headers, _ = auth
    resp = client.put("/stories/update/4242", data={"title": "x"}, headers=headers)
    assert resp.status_code == 404


def test_owner_deletes_story_and_files(client, auth, storage):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]

    resp = client.delete(f"/stories/delete/{story['id']}", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["status"] is True
    assert client.get(f"/stories/read/{story['id']}").status_code == 404
    assert not storage.path_for(THUMBNAILS, story["thumbnail"]).exists()
    assert not storage.path_for(CONTENT, story["contentFile"]).exists()


def test_delete_tolerates_missing_files(client, auth, storage):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    storage.path_for(CONTENT, story["contentFile"]).unlink()

    resp = client.delete(f"/stories/delete/{story['id']}", headers=headers)

    assert resp.status_code == 200
    assert not storage.path_for(THUMBNAILS, story["thumbnail"]).exists()


def test_admin_can_delete_any_story(client, auth, admin_auth):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    admin_headers, _ = admin_auth

    assert client.delete(f"/stories/delete/{story['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/stories/read/{story['id']}").status_code == 404


def test_non_owner_cannot_delete(client, auth, new_user):
    headers, _ = auth
    story = create_story(client, headers).json()["data"]
    other_headers, _ = new_user("Budi", "budi@example.com")

    assert client.delete(f"/stories/delete/{story['id']}", headers=other_headers).status_code == 403
    assert client.delete(f"/stories/delete/{story['id']}").status_code == 401
    assert client.get(f"/stories/read/{story['id']}").status_code == 200
