import uuid


def _request_meeting(client, headers, matter, **overrides):
    body = {
        "external_party_id": str(uuid.uuid4()),
        "proposed_start": "2025-03-10T14:00:00+00:00",
        "note": "Need to discuss discovery",
    }
    body.update(overrides)
    return client.post(f"/matters/{matter.id}/meetings", json=body, headers=headers)


class TestMeetingEndpoints:
    def test_request_accept_complete(self, client, actor_headers, matter):
        resp = _request_meeting(client, actor_headers, matter)
        assert resp.status_code == 201
        meeting = resp.json()
        assert meeting["status"] == "requested"
        assert meeting["confirmed_start"] is None

        resp = client.post(
            f"/meetings/{meeting['id']}/accept",
            json={"video_link": "https://teams.microsoft.com/l/meetup-join/abc"},
            headers=actor_headers,
        )
        assert resp.status_code == 200
        accepted = resp.json()
        assert accepted["status"] == "accepted"
        assert accepted["video_provider"] == "teams"
        assert accepted["confirmed_start"].startswith("2025-03-10T14:00:00")
        assert accepted["confirmed_end"].startswith("2025-03-10T15:00:00")

        resp = client.post(f"/meetings/{meeting['id']}/complete", headers=actor_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

    def test_accept_virtual_without_link(self, client, actor_headers, matter):
        meeting = _request_meeting(client, actor_headers, matter).json()
        resp = client.post(
            f"/meetings/{meeting['id']}/accept", json={}, headers=actor_headers
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "invalid_request"

    def test_reschedule_requires_note(self, client, actor_headers, matter):
        meeting = _request_meeting(client, actor_headers, matter).json()
        resp = client.post(
            f"/meetings/{meeting['id']}/reschedule",
            json={"proposed_start": "2025-03-12T09:00:00+00:00"},
            headers=actor_headers,
        )
        assert resp.status_code == 422

        resp = client.post(
            f"/meetings/{meeting['id']}/reschedule",
            json={
                "proposed_start": "2025-03-12T09:00:00+00:00",
                "note": "Hearing moved",
            },
            headers=actor_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "requested"
        assert resp.json()["internal_note"] == "Hearing moved"

    def test_cancel_then_list(self, client, actor_headers, matter):
        meeting = _request_meeting(client, actor_headers, matter).json()
        resp = client.post(
            f"/meetings/{meeting['id']}/cancel",
            json={"note": "Client withdrew"},
            headers=actor_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        resp = client.post(f"/meetings/{meeting['id']}/cancel", headers=actor_headers)
        assert resp.status_code == 409

        resp = client.get(
            f"/matters/{matter.id}/meetings", params={"status": "cancelled"}
        )
        assert resp.json()["count"] == 1

    def test_meeting_not_found(self, client):
        resp = client.get(f"/meetings/{uuid.uuid4()}")
        assert resp.status_code == 404
