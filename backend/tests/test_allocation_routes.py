"""HTTP tests for tournaments, rounds and allocation edits"""

import pytest
from fastapi.testclient import TestClient

from tests.helpers import pair, pairings_payload


@pytest.fixture
def tournament_id(client: TestClient):
    terrain = client.post("/api/terrain-types", json={"name": "Volkus"})
    assert terrain.status_code == 201

    response = client.post(
        "/api/tournaments",
        json={"name": "Spring Open", "table_count": 4, "terrain_type_ids": [None, None, terrain.json()["id"]]},
    )
    assert response.status_code == 201
    return response.json()["id"]


def generate(client: TestClient, tournament_id: int, round_number: int, pairings=None):
    body = {"pairings": pairings_payload(pairings)} if pairings is not None else None
    return client.post(f"/api/tournaments/{tournament_id}/rounds/{round_number}/generate", json=body)


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_tournament_with_tables(client: TestClient, tournament_id):
    response = client.get(f"/api/tournaments/{tournament_id}")
    assert response.json()["table_count"] == 4

    tables = client.get(f"/api/tournaments/{tournament_id}/tables").json()
    assert [t["table_number"] for t in tables] == [1, 2, 3, 4]
    assert [t["terrain_type_name"] for t in tables] == [None, None, "Volkus", None]


def test_set_table_terrain(client: TestClient, tournament_id):
    terrain_id = client.get("/api/terrain-types").json()[0]["id"]

    response = client.patch(f"/api/tournaments/{tournament_id}/tables/4", json={"terrain_type_id": terrain_id})

    assert response.status_code == 200
    assert response.json()["terrain_type_name"] == "Volkus"


def test_duplicate_terrain_type_conflicts(client: TestClient, tournament_id):
    response = client.post("/api/terrain-types", json={"name": "Volkus"})
    assert response.status_code == 409


def test_unknown_tournament_404(client: TestClient):
    assert client.get("/api/tournaments/999").status_code == 404
    assert generate(client, 999, 1, [pair("a", "b")]).status_code == 404


def test_generate_and_list_round(client: TestClient, tournament_id):
    response = generate(client, tournament_id, 1, [pair("a", "b", 2), pair("c", "d", 1), pair("e", None)])

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == "Round 1 allocations use the suggested table assignments."
    assert [a["table_number"] for a in data["allocations"]] == [1, 2, None]
    assert data["allocations"][2]["is_bye"] is True
    assert data["allocations"][0]["player1"] == {"id": "c", "name": "C", "score": 0}

    listed = client.get(f"/api/tournaments/{tournament_id}/rounds/1/allocations").json()
    assert [a["id"] for a in listed] == [a["id"] for a in data["allocations"]]


def test_regenerate_without_body(client: TestClient, tournament_id):
    generate(client, tournament_id, 1, [pair("a", "b", 2), pair("c", "d", 1)])

    response = generate(client, tournament_id, 1)

    assert response.status_code == 200
    assert [a["table_number"] for a in response.json()["allocations"]] == [1, 2]


def test_generate_over_capacity_is_400(client: TestClient, tournament_id):
    generate(client, tournament_id, 1, [pair("a", "b", 1)])
    pairings = [pair(f"p{i}", f"q{i}") for i in range(5)]

    response = generate(client, tournament_id, 2, pairings)

    assert response.status_code == 400


def test_opponent_without_name_is_400(client: TestClient, tournament_id):
    payload = pairings_payload([pair("a", "b")])
    payload[0]["player2_name"] = None

    response = client.post(
        f"/api/tournaments/{tournament_id}/rounds/1/generate", json={"pairings": payload}
    )

    assert response.status_code == 400


def test_unknown_opponent_totals_are_accepted(client: TestClient, tournament_id):
    payload = pairings_payload([pair("a", "b", 1, total_a=3)])
    del payload[0]["player2_total_score"]
    payload[0]["player2_score"] = None

    response = client.post(
        f"/api/tournaments/{tournament_id}/rounds/1/generate", json={"pairings": payload}
    )

    assert response.status_code == 200
    allocation = response.json()["allocations"][0]
    assert allocation["table_number"] == 1
    assert allocation["player2"] == {"id": "b", "name": "B", "score": 0}


def test_reassign_and_swap(client: TestClient, tournament_id):
    allocations = generate(client, tournament_id, 1, [pair("a", "b", 1), pair("c", "d", 2)]).json()["allocations"]
    first, second = allocations

    moved = client.patch(f"/api/allocations/{first['id']}", json={"table_number": 3, "expected_revision": 1})
    assert moved.status_code == 200
    assert moved.json()["allocations"][0]["table_number"] == 3
    assert moved.json()["allocations"][0]["revision"] == 2

    stale = client.patch(f"/api/allocations/{first['id']}", json={"table_number": 4, "expected_revision": 1})
    assert stale.status_code == 409

    occupied = client.patch(f"/api/allocations/{first['id']}", json={"table_number": 2})
    assert occupied.status_code == 409
    assert occupied.json()["detail"]["occupant_allocation_id"] == second["id"]

    swapped = client.post(
        "/api/allocations/swap", json={"allocation_id_1": first["id"], "allocation_id_2": second["id"]}
    )
    assert swapped.status_code == 200
    assert {a["id"]: a["table_number"] for a in swapped.json()["allocations"]} == {first["id"]: 2, second["id"]: 3}

    collisions = client.get(f"/api/tournaments/{tournament_id}/rounds/1/collisions").json()
    assert collisions["has_collisions"] is False


def test_edit_errors_map_to_status_codes(client: TestClient, tournament_id):
    allocations = generate(client, tournament_id, 1, [pair("a", "b", 1)]).json()["allocations"]
    allocation_id = allocations[0]["id"]

    assert client.patch("/api/allocations/999", json={"table_number": 2}).status_code == 404
    assert client.patch(f"/api/allocations/{allocation_id}", json={"table_number": 99}).status_code == 400
    self_swap = client.post(
        "/api/allocations/swap", json={"allocation_id_1": allocation_id, "allocation_id_2": allocation_id}
    )
    assert self_swap.status_code == 400


def test_collisions_for_missing_round_404(client: TestClient, tournament_id):
    assert client.get(f"/api/tournaments/{tournament_id}/rounds/5/collisions").status_code == 404


def test_list_terrain_types(client: TestClient, tournament_id):
    response = client.get("/api/terrain-types")

    assert response.status_code == 200
    assert [(t["name"], t["description"], t["sort_order"]) for t in response.json()] == [("Volkus", None, 0)]


def test_publish_round(client: TestClient, tournament_id):
    generate(client, tournament_id, 1, [pair("a", "b", 1), pair("c", None)])

    before = client.get(f"/api/tournaments/{tournament_id}/rounds/1").json()
    assert before["is_published"] is False
    assert before["allocation_count"] == 2

    response = client.post(f"/api/tournaments/{tournament_id}/rounds/1/publish")

    assert response.status_code == 200
    assert response.json()["is_published"] is True
    assert response.json()["message"] == "Round 1 allocations are now public"
    assert client.get(f"/api/tournaments/{tournament_id}/rounds/1").json()["is_published"] is True


def test_publish_missing_round_404(client: TestClient, tournament_id):
    assert client.post(f"/api/tournaments/{tournament_id}/rounds/3/publish").status_code == 404
