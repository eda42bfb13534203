"""API-level tests for /tickets and ticket attachments."""

import pytest
from bson import ObjectId


@pytest.fixture
def team(client, make_user):
    """Project owned by Alice with Bob (Developer) and Carol (Viewer); Dave is an outsider."""
    alice_id, alice, _ = make_user("Alice")
    bob_id, bob, bob_email = make_user("Bob")
    carol_id, carol, carol_email = make_user("Carol")
    dave_id, dave, _ = make_user("Dave")

    project = client.post("/projects", json={"name": "Tracker"}, headers=alice).json()
    members_url = f"/projects/{project['_id']}/members"
    client.post(members_url, json={"email": bob_email, "role": "Developer"}, headers=alice)
    client.post(members_url, json={"email": carol_email, "role": "Viewer"}, headers=alice)

    return {
        "project_id": project["_id"],
        "alice": alice, "alice_id": alice_id,
        "bob": bob, "bob_id": bob_id,
        "carol": carol, "carol_id": carol_id,
        "dave": dave, "dave_id": dave_id,
    }


def _create_ticket(client, team, headers, **overrides):
    payload = {"title": "Login fails", "description": "500 on submit", "project_id": team["project_id"]}
    payload.update(overrides)
    response = client.post("/tickets", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _upload(client, ticket_id, headers, *names):
    files = [("attachments", (name, b"log line\n", "text/plain")) for name in names]
    return client.post(f"/tickets/{ticket_id}/attachments", files=files, headers=headers)


class TestTicketLifecycle:
    def test_create_applies_defaults(self, client, team):
        ticket = _create_ticket(client, team, team["carol"])
        assert ticket["status"] == "To Do"
        assert ticket["priority"] == "Medium"
        assert ticket["reporter"] == team["carol_id"]
        assert ticket["project"] == team["project_id"]
        assert ticket["assignee"] is None
        assert ticket["created_at"].endswith("+00:00")
        assert ticket["attachments"] == []

    def test_create_requires_membership(self, client, team):
        response = client.post(
            "/tickets", json={"title": "x", "project_id": team["project_id"]}, headers=team["dave"]
        )
        assert response.status_code == 403

    def test_create_in_missing_project(self, client, team):
        response = client.post("/tickets", json={"title": "x", "project_id": str(ObjectId())}, headers=team["alice"])
        assert response.status_code == 404

    def test_create_rejects_unknown_enum(self, client, team):
        response = client.post(
            "/tickets",
            json={"title": "x", "project_id": team["project_id"], "priority": "Urgent"},
            headers=team["alice"],
        )
        assert response.status_code == 422
        assert response.json()["kind"] == "ValidationError"

    def test_list_is_newest_first_with_people_populated(self, client, team):
        first = _create_ticket(client, team, team["alice"], title="First")
        second = _create_ticket(client, team, team["bob"], title="Second", assignee=team["carol_id"])

        response = client.get(f"/tickets/project/{team['project_id']}", headers=team["carol"])
        assert response.status_code == 200
        tickets = response.json()
        assert {t["_id"] for t in tickets} == {first["_id"], second["_id"]}
        by_id = {t["_id"]: t for t in tickets}
        assert by_id[second["_id"]]["reporter"]["name"] == "Bob"
        assert by_id[second["_id"]]["assignee"]["name"] == "Carol"

    def test_list_forbidden_for_outsider(self, client, team):
        response = client.get(f"/tickets/project/{team['project_id']}", headers=team["dave"])
        assert response.status_code == 403

    def test_partial_update_by_any_member(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        response = client.put(f"/tickets/{ticket['_id']}", json={"status": "In Progress"}, headers=team["carol"])
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "In Progress"
        assert body["title"] == ticket["title"]
        assert body["priority"] == "Medium"

    def test_update_cannot_move_ticket_or_change_reporter(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        response = client.put(
            f"/tickets/{ticket['_id']}",
            json={"project": str(ObjectId()), "reporter": team["dave_id"], "title": "Still here"},
            headers=team["bob"],
        )
        body = response.json()
        assert body["project"] == team["project_id"]
        assert body["reporter"] == team["alice_id"]
        assert body["title"] == "Still here"

    def test_update_validation(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        bad_status = client.put(f"/tickets/{ticket['_id']}", json={"status": "Closed"}, headers=team["alice"])
        assert bad_status.status_code == 422
        bad_assignee = client.put(f"/tickets/{ticket['_id']}", json={"assignee": "bob"}, headers=team["alice"])
        assert bad_assignee.status_code == 422

    def test_update_forbidden_and_missing(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        assert client.put(f"/tickets/{ticket['_id']}", json={"title": "x"}, headers=team["dave"]).status_code == 403
        assert client.put(f"/tickets/{ObjectId()}", json={"title": "x"}, headers=team["alice"]).status_code == 404

    def test_deleted_ticket_disappears_from_listing(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        response = client.delete(f"/tickets/{ticket['_id']}", headers=team["alice"])
        assert response.status_code == 200

        listing = client.get(f"/tickets/project/{team['project_id']}", headers=team["alice"]).json()
        assert ticket["_id"] not in [t["_id"] for t in listing]

    def test_delete_by_reporter_or_owner_only(self, client, team):
        by_carol = _create_ticket(client, team, team["carol"])
        assert client.delete(f"/tickets/{by_carol['_id']}", headers=team["bob"]).status_code == 403
        assert client.delete(f"/tickets/{by_carol['_id']}", headers=team["carol"]).status_code == 200

        by_bob = _create_ticket(client, team, team["bob"])
        assert client.delete(f"/tickets/{by_bob['_id']}", headers=team["alice"]).status_code == 200
        assert client.delete(f"/tickets/{by_bob['_id']}", headers=team["alice"]).status_code == 404


class TestAttachments:
    def test_add_keeps_request_order(self, client, team):
        ticket = _create_ticket(client, team, team["carol"])
        response = _upload(client, ticket["_id"], team["carol"], "a.log", "b.log")
        assert response.status_code == 200
        attachments = response.json()["attachments"]
        assert [a["filename"] for a in attachments] == ["a.log", "b.log"]
        assert all(a["url"].startswith("/uploads/") for a in attachments)
        assert attachments[0]["mimetype"] == "text/plain"
        assert attachments[0]["size"] == len(b"log line\n")

    def test_add_requires_files(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        response = client.post(f"/tickets/{ticket['_id']}/attachments", headers=team["alice"])
        assert response.status_code == 422

    def test_add_is_bounded_per_request(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        response = _upload(client, ticket["_id"], team["alice"], *[f"{i}.log" for i in range(6)])
        assert response.status_code == 422

    def test_add_forbidden_for_outsider(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        assert _upload(client, ticket["_id"], team["dave"], "a.log").status_code == 403

    def test_remove_is_role_gated(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        attachments = _upload(client, ticket["_id"], team["alice"], "a.log", "b.log").json()["attachments"]
        first, second = attachments[0]["_id"], attachments[1]["_id"]

        viewer = client.delete(f"/tickets/{ticket['_id']}/attachments/{first}", headers=team["carol"])
        assert viewer.status_code == 403
        assert viewer.json()["kind"] == "Forbidden"

        developer = client.delete(f"/tickets/{ticket['_id']}/attachments/{first}", headers=team["bob"])
        assert developer.status_code == 200
        assert [a["_id"] for a in developer.json()["attachments"]] == [second]

    def test_remove_absent_id_is_not_an_error(self, client, team):
        ticket = _create_ticket(client, team, team["alice"])
        _upload(client, ticket["_id"], team["alice"], "a.log")

        response = client.delete(f"/tickets/{ticket['_id']}/attachments/{ObjectId()}", headers=team["bob"])
        assert response.status_code == 200
        assert len(response.json()["attachments"]) == 1

    def test_remove_discards_blob(self, client, team, store):
        ticket = _create_ticket(client, team, team["alice"])
        attachment = _upload(client, ticket["_id"], team["alice"], "a.log").json()["attachments"][0]
        stored = store.upload_dir / attachment["url"].rsplit("/", 1)[-1]
        assert stored.exists()

        client.delete(f"/tickets/{ticket['_id']}/attachments/{attachment['_id']}", headers=team["alice"])
        assert not stored.exists()

    def test_ticket_delete_discards_blobs(self, client, team, store):
        ticket = _create_ticket(client, team, team["alice"])
        attachments = _upload(client, ticket["_id"], team["alice"], "a.log", "b.log").json()["attachments"]
        stored = [store.upload_dir / a["url"].rsplit("/", 1)[-1] for a in attachments]
        assert all(path.exists() for path in stored)

        assert client.delete(f"/tickets/{ticket['_id']}", headers=team["alice"]).status_code == 200
        assert not any(path.exists() for path in stored)

    def test_oversized_upload_is_rejected_without_leaving_a_file(self, client, team, store):
        ticket = _create_ticket(client, team, team["alice"])
        files = [
            ("attachments", ("small.log", b"ok\n", "text/plain")),
            ("attachments", ("big.log", b"x" * (store.max_bytes + 1), "text/plain")),
        ]
        response = client.post(f"/tickets/{ticket['_id']}/attachments", files=files, headers=team["alice"])
        assert response.status_code == 422
        assert response.json()["kind"] == "ValidationError"

        leftovers = list(store.upload_dir.iterdir()) if store.upload_dir.exists() else []
        assert leftovers == []
        listed = client.get(f"/tickets/project/{team['project_id']}", headers=team["alice"]).json()
        assert listed[0]["attachments"] == []

    def test_upload_at_the_size_limit_is_stored_whole(self, client, team, store):
        ticket = _create_ticket(client, team, team["alice"])
        payload = b"y" * store.max_bytes
        files = [("attachments", ("edge.bin", payload, "application/octet-stream"))]
        attachment = client.post(
            f"/tickets/{ticket['_id']}/attachments", files=files, headers=team["alice"]
        ).json()["attachments"][0]

        assert attachment["size"] == store.max_bytes
        assert (store.upload_dir / attachment["url"].rsplit("/", 1)[-1]).read_bytes() == payload
