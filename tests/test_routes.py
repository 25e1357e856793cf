from app import create_app
from articles import importEntries
from conftest import fileMeta
from dbapi import ArticleAPI


def _seed(memdb):
    importEntries(ArticleAPI(memdb), "u@x.com", [
        (fileMeta("/published/a.md", "2021-01-01"), b"About a.\n"),
        (fileMeta("/published/b.md", "2021-06-01"), b"About b.\n"),
    ])


def test_listing_without_index_is_empty(client):
    res = client.get("/api/u@x.com/articles")
    assert res.status_code == 200
    assert res.get_json() == {"items": [], "total": 0}


def test_listing_is_most_recent_first(client, memdb):
    _seed(memdb)
    data = client.get("/api/u@x.com/articles").get_json()
    assert data["total"] == 2
    assert [i["permalink"] for i in data["items"]] == ["b", "a"]
    assert all(i["Content"] == "" for i in data["items"])


def test_show_article(client, memdb):
    _seed(memdb)
    res = client.get("/api/u@x.com/articles/a")
    assert res.status_code == 200
    data = res.get_json()
    assert data["title"] == "a"
    assert data["Content"] == "<p>About a.</p>"


def test_unknown_article_is_a_json_404(client, memdb):
    _seed(memdb)
    res = client.get("/api/u@x.com/articles/nope")
    assert res.status_code == 404
    assert res.get_json()["code"] == 404


def test_unknown_route_is_a_json_404(client):
    res = client.get("/nothing/here")
    assert res.status_code == 404
    assert res.get_json()["code"] == 404


def test_reindex_and_disconnect(client, memdb):
    _seed(memdb)
    assert client.post("/admin/u@x.com/reindex").get_json() == {"total": 2}
    assert client.post("/admin/u@x.com/disconnect").get_json() == {"deleted": 2}
    assert client.get("/api/u@x.com/articles").get_json()["total"] == 0


def test_admin_routes_require_the_configured_token(memdb):
    app = create_app(memdb, {"db_file": ":memory:", "secret_key": "test", "admin_token": "s3cret"})
    c = app.test_client()
    _seed(memdb)

    res = c.post("/admin/u@x.com/disconnect")
    assert res.status_code == 403
    assert res.get_json()["code"] == 403
    assert c.post("/admin/u@x.com/reindex", headers={"Authorization": "Bearer wrong"}).status_code == 403
    assert c.get("/api/u@x.com/articles").get_json()["total"] == 2

    res = c.post("/admin/u@x.com/reindex", headers={"Authorization": "Bearer s3cret"})
    assert res.get_json() == {"total": 2}
