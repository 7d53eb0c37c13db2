"""Events, participants and registrations."""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from conftest import PNG_BYTES, bearer

EVENT_FORM = {
    "title": "Intro to FastAPI",
    "eventFocus": "Backend",
    "description": "Hands-on workshop",
    "guestName": "Ada",
    "date": "2030-05-01T10:00:00",
    "location": "Room 101",
    "locationType": "ONSITE",
}


def poster(name="poster.png"):
    return {"eventPoster": (name, PNG_BYTES, "image/png")}


@pytest.fixture
def create_event(client, admin_headers):
    def _create(files=None, **overrides):
        resp = client.post("/event", data={**EVENT_FORM, **overrides}, files=files, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["event"]

    return _create


def register(client, event_id, email="ann@university.edu", name="Ann Lee"):
    return client.post(
        "/participant/register-participant",
        json={"name": name, "email": email, "phone": "0123", "sex": "F", "eventId": event_id},
    )


class TestEvents:
    def test_create_with_poster(self, client, admin_headers, upload_dir):
        resp = client.post("/event", data=EVENT_FORM, files=poster(), headers=admin_headers)

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "success"
        assert body["message"] == "Event created successfully"
        assert body["event"]["title"] == "Intro to FastAPI"
        assert body["event"]["locationType"] == "ONSITE"
        assert body["event"]["eventPoster"].startswith("/uploads/eventPoster-")
        assert len(list(upload_dir.iterdir())) == 1

    def test_create_requires_admin(self, client, create_user):
        user = create_user()

        assert client.post("/event", data=EVENT_FORM, headers=bearer(user)).status_code == 403

    def test_invalid_location_type(self, client, admin_headers):
        resp = client.post("/event", data={**EVENT_FORM, "locationType": "MOON"}, headers=admin_headers)

        assert resp.status_code == 400

    def test_get_and_list(self, client, create_event):
        event = create_event()

        assert client.get(f"/event/{event['id']}").json()["title"] == "Intro to FastAPI"
        assert [e["id"] for e in client.get("/event").json()] == [event["id"]]
        assert client.get("/event/999").status_code == 404

    def test_update_replaces_poster(self, client, admin_headers, create_event, upload_dir):
        event = create_event(files=poster("old.png"))

        resp = client.patch(
            f"/event/{event['id']}",
            data={"title": "Advanced FastAPI"},
            files=poster("new.gif"),
            headers=admin_headers,
        )

        assert resp.status_code == 200
        updated = resp.json()["event"]
        assert updated["title"] == "Advanced FastAPI"
        assert updated["eventPoster"].endswith(".gif")
        assert [p.name for p in upload_dir.iterdir()] == [updated["eventPoster"].rsplit("/", 1)[1]]

    def test_update_keeps_unsent_fields(self, client, admin_headers, create_event):
        event = create_event()

        resp = client.patch(f"/event/{event['id']}", data={"location": "Online"}, headers=admin_headers)

        assert resp.json()["event"]["title"] == event["title"]
        assert resp.json()["event"]["location"] == "Online"

    def test_delete_removes_poster(self, client, admin_headers, create_event, upload_dir):
        event = create_event(files=poster())

        resp = client.delete(f"/event/{event['id']}", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json()["message"] == "Event deleted successfully"
        assert list(upload_dir.iterdir()) == []
        assert client.get(f"/event/{event['id']}").status_code == 404


class TestRegistration:
    def test_register_and_list_participants(self, client, create_event):
        event = create_event()

        resp = register(client, event["id"])

        assert resp.status_code == 201
        assert resp.json()["eventId"] == event["id"]
        participants = client.get(f"/event/{event['id']}/participants").json()
        assert [p["email"] for p in participants] == ["ann@university.edu"]
        detail = client.get(f"/event/{event['id']}").json()
        assert detail["registrations"][0]["participant"]["name"] == "Ann Lee"

    def test_participant_reused_across_events(self, client, create_event):
        first = create_event()
        second = create_event(title="Second")

        a = register(client, first["id"]).json()
        b = register(client, second["id"]).json()

        assert a["participant"]["id"] == b["participant"]["id"]
        assert len(client.get("/participant").json()) == 1

    def test_double_registration_conflicts(self, client, create_event):
        event = create_event()
        register(client, event["id"])

        resp = register(client, event["id"])

        assert resp.status_code == 409

    def test_unknown_event(self, client):
        resp = register(client, 404)

        assert resp.status_code == 404
        assert resp.json()["message"] == "Event with ID 404 not found"

    def test_export_participants(self, client, admin_headers, create_event):
        event = create_event()
        register(client, event["id"])
        register(client, event["id"], email="bo@university.edu", name="Bo Chan")

        resp = client.get(f"/event/{event['id']}/participants/export", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        ws = load_workbook(BytesIO(resp.content)).active
        rows = list(ws.iter_rows(values_only=True))
        assert rows[0] == ("Name", "Email", "Phone", "Sex", "Registered At")
        assert [r[1] for r in rows[1:]] == ["ann@university.edu", "bo@university.edu"]


class TestParticipants:
    def test_create_get_delete(self, client, admin_headers):
        created = client.post("/participant", json={"name": "Cy", "email": "cy@university.edu"})
        assert created.status_code == 201
        pid = created.json()["participant"]["id"]

        assert client.get(f"/participant/{pid}").json()["email"] == "cy@university.edu"

        deleted = client.delete(f"/participant/{pid}", headers=admin_headers)
        assert deleted.status_code == 200
        assert deleted.json()["participant"]["id"] == pid
        assert client.get(f"/participant/{pid}").status_code == 404

    def test_duplicate_email(self, client):
        client.post("/participant", json={"name": "Cy", "email": "cy@university.edu"})

        resp = client.post("/participant", json={"name": "Cy Two", "email": "cy@university.edu"})

        assert resp.status_code == 409

    def test_deleting_participant_drops_registrations(self, client, admin_headers, create_event):
        event = create_event()
        pid = register(client, event["id"]).json()["participant"]["id"]

        client.delete(f"/participant/{pid}", headers=admin_headers)

        assert client.get(f"/event/{event['id']}/participants").json() == []
