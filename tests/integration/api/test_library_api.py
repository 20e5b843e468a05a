"""Integration tests for the personal library endpoints."""

from collections.abc import Callable

import httpx
from fastapi.testclient import TestClient

from mushee.domain.entities import CanonicalScore

Uploader = Callable[..., httpx.Response]

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


class TestLibrary:
    """GET/POST/DELETE /api/library"""

    def test_empty_library(self, client: TestClient) -> None:
        response = client.get("/api/library", headers=ALICE)

        assert response.status_code == 200
        assert response.json()["data"] == []
        assert response.json()["pagination"]["total_items"] == 0

    def test_add_catalog_score(
        self, public_scores: list[CanonicalScore], client: TestClient
    ) -> None:
        score_id = str(public_scores[0].id)

        first = client.post("/api/library", json={"score_id": score_id}, headers=ALICE)
        again = client.post("/api/library", json={"score_id": score_id}, headers=ALICE)

        assert first.status_code == 201
        assert again.status_code == 200
        assert again.json()["added_at"] == first.json()["added_at"]
        library = client.get("/api/library", headers=ALICE).json()
        assert [item["score"]["id"] for item in library["data"]] == [score_id]

    def test_add_unknown_score(self, client: TestClient) -> None:
        response = client.post(
            "/api/library",
            json={"score_id": "00000000-0000-0000-0000-000000000000"},
            headers=ALICE,
        )

        assert response.status_code == 404

    def test_remove_keeps_score_for_others(
        self, client: TestClient, upload: Uploader, score_xml: Callable[..., bytes]
    ) -> None:
        data = score_xml(title="Shared")
        score_id = upload(data, user="alice").json()["score"]["id"]
        upload(data, user="bob")

        response = client.delete(f"/api/library/{score_id}", headers=ALICE)

        assert response.status_code == 204
        assert client.get("/api/library", headers=ALICE).json()["data"] == []
        bob_library = client.get("/api/library", headers=BOB).json()
        assert [item["score"]["id"] for item in bob_library["data"]] == [score_id]
        assert client.get(f"/api/scores/{score_id}").status_code == 200

    def test_remove_then_reupload_links_same_score(
        self, client: TestClient, upload: Uploader, score_xml: Callable[..., bytes]
    ) -> None:
        """The canonical record survives removal and is found again by hash."""
        data = score_xml(title="Comeback")
        score_id = upload(data).json()["score"]["id"]
        client.delete(f"/api/library/{score_id}", headers=ALICE)

        response = upload(data)

        assert response.status_code == 200
        assert response.json()["duplicate"] is True
        assert response.json()["score"]["id"] == score_id
        assert response.json()["already_in_library"] is False

    def test_remove_not_in_library(
        self, public_scores: list[CanonicalScore], client: TestClient
    ) -> None:
        response = client.delete(f"/api/library/{public_scores[0].id}", headers=ALICE)

        assert response.status_code == 404

    def test_pagination_and_search(
        self, client: TestClient, upload: Uploader, score_xml: Callable[..., bytes]
    ) -> None:
        for title in ["Prelude", "Fugue", "Toccata"]:
            upload(score_xml(title=title, composer="Bach"))
        upload(score_xml(title="Arabesque", composer="Debussy"))

        page = client.get(
            "/api/library", params={"limit": 2, "page": 2, "sort": "title"}, headers=ALICE
        ).json()
        search = client.get("/api/library", params={"search": "bach"}, headers=ALICE).json()

        # order defaults to desc
        assert page["pagination"] == {
            "page": 2,
            "limit": 2,
            "total_items": 4,
            "total_pages": 2,
        }
        assert [item["score"]["title"] for item in page["data"]] == ["Fugue", "Arabesque"]
        assert search["pagination"]["total_items"] == 3

    def test_libraries_are_private(
        self, client: TestClient, upload: Uploader, score_xml: Callable[..., bytes]
    ) -> None:
        upload(score_xml(title="Alice only"), user="alice")

        assert client.get("/api/library", headers=BOB).json()["data"] == []
