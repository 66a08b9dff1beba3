from conftest import login_as, prepare_client


def _upload(client, *files, password=None):
    data = {"file_password": password} if password else {}
    return client.post(
        "/upload",
        files=[("files", (name, content, "text/plain")) for name, content in files],
        data=data,
    )


def test_end_to_end_share_trash_purge(client):
    login_as(client, "u1@example.com")

    response = _upload(client, ("notes.txt", b"hello world!"))
    assert response.status_code == 200
    [result] = response.json()["results"]
    assert result["ok"] is True
    uploaded = result["file"]
    assert uploaded["size_bytes"] == 12
    assert "stored_name" not in uploaded
    share_id = uploaded["share_id"]

    # Anonymous download.
    client.post("/logout")
    public = client.get(f"/file/{share_id}")
    assert public.status_code == 200
    assert public.content == b"hello world!"
    assert "notes.txt" in public.headers["content-disposition"]
    assert public.headers["cache-control"] == "private, no-store"

    login_as(client, "u1@example.com")
    assert client.post(f"/trash/{uploaded['id']}").status_code == 200
    dashboard = client.get("/files").json()
    assert dashboard["files"] == []
    assert [f["id"] for f in dashboard["trash"]] == [uploaded["id"]]

    assert client.post(f"/delete/{uploaded['id']}").status_code == 200
    assert client.post(f"/delete/{uploaded['id']}").status_code == 200
    assert client.get(f"/file/{share_id}").status_code == 404
    assert list((client.storage_dir / "1").iterdir()) == []


def test_restore_returns_file_to_dashboard(client):
    login_as(client, "u1@example.com")
    uploaded = _upload(client, ("a.txt", b"a")).json()["results"][0]["file"]

    client.post(f"/trash/{uploaded['id']}")
    restored = client.post(f"/restore/{uploaded['id']}").json()

    assert restored["share_id"] == uploaded["share_id"]
    dashboard = client.get("/files").json()
    assert [f["id"] for f in dashboard["files"]] == [uploaded["id"]]
    assert dashboard["trash"] == []
    assert dashboard["usage"]["total_files"] == 1


def test_password_protected_share(client):
    login_as(client, "u1@example.com")
    uploaded = _upload(client, ("secret.txt", b"classified"), password="pw").json()["results"][0]["file"]
    assert uploaded["password_protected"] is True
    share_id = uploaded["share_id"]

    assert client.get(f"/file/{share_id}").status_code == 401
    assert client.get(f"/file/{share_id}", headers={"x-share-password": "bad"}).status_code == 401
    # A password in the query string is ignored.
    assert client.get(f"/file/{share_id}", params={"password": "pw"}).status_code == 401
    assert client.get(f"/file/{share_id}", headers={"x-share-password": "pw"}).content == b"classified"
    assert client.post(f"/file/{share_id}", data={"password": "pw"}).content == b"classified"

    info = client.get(f"/file/{share_id}/info").json()
    assert info["password_required"] is True
    assert "owner_id" not in info


def test_cross_owner_access_is_forbidden(client):
    login_as(client, "alice@example.com")
    uploaded = _upload(client, ("alice.txt", b"mine")).json()["results"][0]["file"]
    client.post("/logout")

    login_as(client, "bob@example.com")
    for method, url in [
        ("get", f"/files/{uploaded['id']}"),
        ("get", f"/files/{uploaded['id']}/download"),
        ("post", f"/trash/{uploaded['id']}"),
        ("post", f"/restore/{uploaded['id']}"),
        ("post", f"/delete/{uploaded['id']}"),
    ]:
        response = getattr(client, method)(url)
        assert response.status_code == 403, url
        assert "alice" not in response.text

    assert client.get("/files").json()["files"] == []


def test_owner_can_download_by_id(client):
    login_as(client, "u1@example.com")
    uploaded = _upload(client, ("a.txt", b"owner bytes")).json()["results"][0]["file"]

    assert client.get(f"/files/{uploaded['id']}").json()["original_name"] == "a.txt"
    assert client.get(f"/files/{uploaded['id']}/download").content == b"owner bytes"
    assert client.get("/files/9999").status_code == 403


def test_missing_and_foreign_file_ids_get_same_response(client):
    login_as(client, "alice@example.com")
    uploaded = _upload(client, ("alice.txt", b"mine")).json()["results"][0]["file"]
    client.post("/logout")

    login_as(client, "bob@example.com")
    for method, template in [
        ("get", "/files/{}"),
        ("get", "/files/{}/download"),
        ("post", "/trash/{}"),
        ("post", "/restore/{}"),
    ]:
        foreign = getattr(client, method)(template.format(uploaded["id"]))
        missing = getattr(client, method)(template.format(uploaded["id"] + 1000))
        assert foreign.status_code == missing.status_code == 403
        assert foreign.json() == missing.json()

    # Purging an id that does not exist stays a no-op success.
    assert client.post(f"/delete/{uploaded['id'] + 1000}").status_code == 200


def test_routes_require_login(client):
    assert client.get("/files").status_code == 401
    assert _upload(client, ("a.txt", b"a")).status_code == 401
    assert client.post("/trash/1").status_code == 401


def test_register_and_login_errors(client):
    assert client.post("/register", data={"email": "a@example.com", "password": "pw"}).status_code == 201
    duplicate = client.post("/register", data={"email": "a@example.com", "password": "pw"})
    assert duplicate.status_code == 409
    bad_login = client.post("/login", data={"email": "a@example.com", "password": "wrong"})
    assert bad_login.status_code == 401
    assert bad_login.json()["detail"] == "Invalid email or password"


def test_batch_reports_each_file(tmp_path, monkeypatch):
    with prepare_client(tmp_path, monkeypatch, max_size="8") as c:
        login_as(c, "u1@example.com")

        response = _upload(c, ("small.txt", b"tiny"), ("big.txt", b"x" * 9))

        assert response.status_code == 200
        small, big = response.json()["results"]
        assert small["ok"] is True
        assert big["ok"] is False
        assert "File too large" in big["error"]
        assert len(c.get("/files").json()["files"]) == 1

        only_big = _upload(c, ("big.txt", b"x" * 9))
        assert only_big.status_code == 413


def test_trashed_share_visible_when_enabled(tmp_path, monkeypatch):
    with prepare_client(tmp_path, monkeypatch, share_trashed="true") as c:
        login_as(c, "u1@example.com")
        uploaded = _upload(c, ("a.txt", b"still here")).json()["results"][0]["file"]
        c.post(f"/trash/{uploaded['id']}")

        assert c.get(f"/file/{uploaded['share_id']}").content == b"still here"


def test_missing_bytes_do_not_leak_paths(client):
    login_as(client, "u1@example.com")
    uploaded = _upload(client, ("a.txt", b"a")).json()["results"][0]["file"]
    for path in (client.storage_dir / "1").iterdir():
        path.unlink()

    response = client.get(f"/file/{uploaded['share_id']}")

    assert response.status_code == 500
    assert response.json() == {"detail": "File content is unavailable"}
    assert client.post(f"/delete/{uploaded['id']}").status_code == 200
    assert client.get(f"/file/{uploaded['share_id']}").status_code == 404


def test_share_rate_limit(tmp_path, monkeypatch):
    with prepare_client(tmp_path, monkeypatch, rate_limit="2") as c:
        for _ in range(2):
            assert c.get("/file/unknown").status_code == 404
        limited = c.get("/file/unknown")
        assert limited.status_code == 429
        assert "Retry-After" in limited.headers


def test_metrics_counts_uploads(client):
    login_as(client, "u1@example.com")
    _upload(client, ("a.txt", b"abc"))

    payload = client.get("/metrics").json()

    assert payload["uploads"] == 1
    assert payload["bytes_uploaded"] == 3
    assert payload["files"] == 1
    assert payload["storage_bytes"] == 3
