import pytest

from tests.support.builders import bearer, claim_message, ts


@pytest.fixture
def conversation(client, fake_db):
    fake_db.seed("posts/p1", {"title": "Umbrella", "status": "pending"})
    fake_db.seed("conversations/c1", {"postId": "p1", "participants": {"student1": {}, "finder": {}}})
    return "c1"


def test_requests_without_token_are_rejected(client, conversation):
    response = client.post(f"/user/api/conversations/{conversation}/claims", json={"postId": "p1"})

    assert response.status_code == 401
    assert response.get_json()["code"] == "UNAUTHORIZED"


def test_invalid_token_is_rejected(client, conversation):
    response = client.post(
        f"/user/api/conversations/{conversation}/claims", json={"postId": "p1"}, headers=bearer("forged")
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid or expired token"


def test_inactive_account_is_rejected(client, fake_db, conversation):
    fake_db.seed("users/student1", {"firstName": "Ana", "status": "banned"})

    response = client.post(
        f"/user/api/conversations/{conversation}/claims", json={"postId": "p1"}, headers=bearer("user-token")
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "Account is not active"


def test_send_claim_request(client, fake_db, conversation):
    response = client.post(
        f"/user/api/conversations/{conversation}/claims",
        json={"postId": "p1", "postTitle": "Umbrella", "claimReason": "Blue with white dots"},
        headers=bearer("user-token"),
    )

    assert response.status_code == 201
    message_id = response.get_json()["messageId"]
    message = fake_db.data(f"conversations/c1/messages/{message_id}")
    assert message["senderId"] == "student1"
    assert message["senderName"] == "Ana Reyes"
    [record] = fake_db.data("posts/p1")["allClaimRequests"]
    assert record["messageId"] == message_id
    assert fake_db.data("conversations/c1")["unreadCounts"] == {"finder": 1}


def test_send_claim_request_requires_post_id(client, conversation):
    response = client.post(f"/user/api/conversations/{conversation}/claims", json={}, headers=bearer("user-token"))

    assert response.status_code == 400


def test_send_claim_request_to_missing_conversation(client):
    response = client.post("/user/api/conversations/nope/claims", json={"postId": "p1"}, headers=bearer("user-token"))

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Conversation not found"}


def test_respond_to_claim_request(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))
    fake_db.seed("posts/p1", {"status": "pending", "allClaimRequests": [{"messageId": "m1", "status": "pending"}]})

    response = client.post(
        "/user/api/conversations/c1/claims/m1/respond", json={"status": "rejected"}, headers=bearer("finder-token")
    )

    assert response.status_code == 200
    assert response.get_json()["status"] == "rejected"
    record = fake_db.data("posts/p1")["allClaimRequests"][0]
    assert record["status"] == "rejected"
    assert record["responderId"] == "finder"


def test_respond_requires_status(client, conversation):
    response = client.post("/user/api/conversations/c1/claims/m1/respond", json={}, headers=bearer("finder-token"))

    assert response.status_code == 400


def test_respond_with_unknown_status(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.post(
        "/user/api/conversations/c1/claims/m1/respond", json={"status": "maybe"}, headers=bearer("finder-token")
    )

    assert response.status_code == 400


def test_outsider_cannot_send_claim_request(client, fake_db, conversation):
    response = client.post(
        f"/user/api/conversations/{conversation}/claims", json={"postId": "p1"}, headers=bearer("outsider-token")
    )

    assert response.status_code == 403
    assert fake_db.paths("conversations/c1/messages") == []
    assert "allClaimRequests" not in fake_db.data("posts/p1")


def test_claimant_cannot_respond_to_own_claim(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.post(
        "/user/api/conversations/c1/claims/m1/respond", json={"status": "accepted"}, headers=bearer("user-token")
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "You cannot respond to your own claim request"
    assert fake_db.data("conversations/c1/messages/m1")["claimData"]["status"] == "pending"


def test_outsider_cannot_respond_to_claim(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.post(
        "/user/api/conversations/c1/claims/m1/respond", json={"status": "rejected"}, headers=bearer("outsider-token")
    )

    assert response.status_code == 403
    assert fake_db.data("conversations/c1/messages/m1")["claimData"]["status"] == "pending"


def test_staff_can_respond_to_claim(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.post(
        "/user/api/conversations/c1/claims/m1/respond", json={"status": "rejected"}, headers=bearer("admin-token")
    )

    assert response.status_code == 200
    assert fake_db.data("conversations/c1/messages/m1")["claimData"]["responderId"] == "admin1"


def test_confirm_claim(client, fake_db, conversation):
    fake_db.seed(
        "conversations/c1/messages/m1",
        claim_message("student1", status="pending_confirmation", requested_at=ts(1)),
    )

    response = client.post("/user/api/conversations/c1/claims/m1/confirm", headers=bearer("finder-token"))

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "status": "accepted"}
    claim_data = fake_db.data("conversations/c1/messages/m1")["claimData"]
    assert claim_data["idPhotoConfirmedBy"] == "finder"
    assert fake_db.data("posts/p1")["status"] == "resolved"


def test_claimant_cannot_confirm_own_claim(client, fake_db, conversation):
    fake_db.seed(
        "conversations/c1/messages/m1",
        claim_message("student1", status="pending_confirmation", requested_at=ts(1)),
    )

    response = client.post("/user/api/conversations/c1/claims/m1/confirm", headers=bearer("user-token"))

    assert response.status_code == 403
    assert fake_db.data("conversations/c1/messages/m1")["claimData"]["status"] == "pending_confirmation"


def test_confirm_pending_claim_conflicts(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.post("/user/api/conversations/c1/claims/m1/confirm", headers=bearer("finder-token"))

    assert response.status_code == 409


def test_detect_location(client):
    response = client.post("/user/api/location/detect", json={"lat": 8.48515, "lng": 124.6562}, headers=bearer("user-token"))

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "location": "ICT Building", "confidence": 95, "alternatives": []}


@pytest.mark.parametrize("payload", [{}, {"lat": "north", "lng": 124.6}, {"lat": 8.48}])
def test_detect_location_rejects_bad_coordinates(client, payload):
    response = client.post("/user/api/location/detect", json=payload, headers=bearer("user-token"))

    assert response.status_code == 400


def test_list_buildings(client):
    response = client.get("/user/api/location/buildings", headers=bearer("user-token"))

    buildings = response.get_json()["buildings"]
    assert response.status_code == 200
    assert "ICT Building" in [b["name"] for b in buildings]
    assert all(len(point) == 2 for b in buildings for point in b["coordinates"])


def test_participant_can_delete_conversation(client, fake_db, conversation):
    fake_db.seed("conversations/c1/messages/m1", claim_message("student1", requested_at=ts(1)))

    response = client.delete("/user/api/conversations/c1", headers=bearer("user-token"))

    assert response.status_code == 200
    assert response.get_json()["deleted"] == 2
    assert fake_db.paths("conversations") == []
    assert fake_db.data("posts/p1")["allClaimRequests"][0]["messageId"] == "m1"


def test_outsider_cannot_delete_conversation(client, fake_db, conversation):
    fake_db.seed("conversations/c2", {"postId": "p1", "participants": {"finder": {}, "someone": {}}})

    response = client.delete("/user/api/conversations/c2", headers=bearer("user-token"))

    assert response.status_code == 403
    assert fake_db.exists("conversations/c2")


def test_delete_missing_conversation(client):
    assert client.delete("/user/api/conversations/nope", headers=bearer("user-token")).status_code == 404
