"""Tests for the audit trail endpoints."""

from fastapi import status


def test_trail_lists_decisions_in_order(
    client, review_report, civil_defense, citizen_headers, pipeline
) -> None:
    pipeline.authority_decide(review_report.id, civil_defense.actor_ref, "approve")

    response = client.get(f"/api/v1/audit/{review_report.id}", headers=citizen_headers)

    assert response.status_code == status.HTTP_200_OK
    entries = response.json()
    assert [(e["source"], e["to_status"]) for e in entries] == [
        ("automated", "community_review"),
        ("authority", "approved"),
    ]
    assert all("reviewer" not in key and "author" not in key for key in entries[0])


def test_trail_for_missing_item(client, citizen_headers) -> None:
    response = client.get("/api/v1/audit/missing", headers=citizen_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_pending_worklist_is_privileged(
    client, review_report, citizen_headers, authority_headers
) -> None:
    denied = client.get("/api/v1/audit/pending", headers=citizen_headers)
    allowed = client.get("/api/v1/audit/pending", headers=authority_headers)

    assert denied.status_code == status.HTTP_403_FORBIDDEN
    assert allowed.status_code == status.HTTP_200_OK
    assert [entry["item_id"] for entry in allowed.json()] == [review_report.id]


def test_anonymous_trail_is_privileged(client, citizen_headers, authority_headers) -> None:
    response = client.post(
        "/api/v1/anonymous/reports",
        json={
            "content": "Descarte irregular de entulho na margem do rio, perto da escola",
            "category": "environment",
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    item_id = client.get("/api/v1/items", headers=authority_headers).json()[0]["id"]

    denied = client.get(f"/api/v1/audit/{item_id}", headers=citizen_headers)
    allowed = client.get(f"/api/v1/audit/{item_id}", headers=authority_headers)

    assert denied.status_code == status.HTTP_404_NOT_FOUND
    assert allowed.status_code == status.HTTP_200_OK
    assert len(allowed.json()) == 1
