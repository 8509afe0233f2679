"""Tests for comment endpoints."""

import pytest
from fastapi.testclient import TestClient


AUTHOR = {"X-User-Id": "2"}
STRANGER = {"X-User-Id": "3"}


@pytest.fixture
def post(make_post):
    return make_post(1, author_id=5)


class TestCommentEndpoints:
    def test_reply_chain_is_capped(self, client: TestClient, post):
        url = "/v1/posts/1/comments"
        c1 = client.post(url, json={"content": "C1"}, headers=AUTHOR).json()
        c2 = client.post(
            url, json={"content": "C2", "parent_id": c1["id"]}, headers=AUTHOR
        ).json()
        response = client.post(
            url, json={"content": "C3", "parent_id": c2["id"]}, headers=AUTHOR
        )
        assert response.status_code == 201
        c3 = response.json()
        assert c3["parent_id"] == c1["id"]

        tree = client.get("/v1/posts/1/comments/tree").json()
        assert len(tree) == 1
        assert [reply["id"] for reply in tree[0]["replies"]] == [c2["id"], c3["id"]]

    def test_parent_from_other_post(
        self, client: TestClient, post, make_post, make_comment
    ):
        make_post(2)
        make_comment(20, post_id=2)
        response = client.post(
            "/v1/posts/1/comments",
            json={"content": "x", "parent_id": 20},
            headers=AUTHOR,
        )
        assert response.status_code == 422
        assert "does not belong" in response.json()["message"]

    def test_comment_on_missing_post(self, client: TestClient):
        response = client.post(
            "/v1/posts/1/comments", json={"content": "x"}, headers=AUTHOR
        )
        assert response.status_code == 404

    def test_flat_previous_and_count(self, client: TestClient, post, make_comment):
        make_comment(1, post_id=1, minutes=1)
        make_comment(2, post_id=1, minutes=2)
        make_comment(3, post_id=1, parent_id=1, minutes=3)

        flat = client.get("/v1/posts/1/comments/flat").json()
        assert [c["id"] for c in flat] == [1, 2, 3]

        latest = client.get("/v1/posts/1/comments/previous").json()
        assert [c["id"] for c in latest] == [2, 1]
        older = client.get(
            "/v1/posts/1/comments/previous", params={"last_comment_id": 2}
        ).json()
        assert [c["id"] for c in older] == [1]

        count = client.get("/v1/posts/1/comments/count").json()
        assert count == {"post_id": 1, "count": 3}

    def test_update_and_delete(self, client: TestClient, post, make_comment):
        make_comment(1, post_id=1, author_id=2)

        denied = client.put("/v1/comments/1", json={"content": "x"}, headers=STRANGER)
        assert denied.status_code == 404

        updated = client.put(
            "/v1/comments/1", json={"content": "edited"}, headers=AUTHOR
        )
        assert updated.status_code == 200
        assert updated.json()["content"] == "edited"

        assert client.delete("/v1/comments/1", headers=AUTHOR).status_code == 204
        assert client.get("/v1/posts/1/comments/flat").json() == []

    def test_blank_content_rejected(self, client: TestClient, post):
        response = client.post(
            "/v1/posts/1/comments", json={"content": "   "}, headers=AUTHOR
        )
        assert response.status_code == 422
