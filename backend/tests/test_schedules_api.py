"""Tests for the /schedules HTTP endpoints (in-memory Mongo fake)."""

from datetime import date

from app.core.security import create_access_token
from app.crud.schedules import to_document
from app.models.schedule import RecurrenceRule, Schedule, TimeBlock

from conftest import TEST_USER_ID


def block_payload(start="09:00", end="10:00", day=1, subject="Math", **kwargs):
    return {"day_of_week": day, "start_time": start, "end_time": end, "subject": subject, **kwargs}


def schedule_payload(blocks=None, **kwargs):
    payload = {
        "name": "Semester plan",
        "description": "Weekly study routine",
        "time_blocks": blocks or [block_payload()],
        "recurring": {"is_recurring": True, "frequency": "weekly", "start_date": "2024-01-01"},
    }
    payload.update(kwargs)
    return payload


def create(client, **kwargs):
    response = client.post("/schedules/", json=schedule_payload(**kwargs))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateAndRead:

    def test_create_schedule(self, client, fake_db):
        body = create(client)
        assert body["user_id"] == TEST_USER_ID
        assert body["is_active"] is True
        assert body["has_conflicts"] is False
        assert body["weekly_study_minutes"] == 60
        assert body["recurring"]["start_date"] == "2024-01-01"
        assert body["time_blocks"][0]["id"]
        assert len(fake_db["schedules"].docs) == 1

    def test_iso_datetime_start_date_is_accepted(self, client):
        body = create(
            client,
            recurring={"is_recurring": True, "frequency": "weekly", "start_date": "2024-01-01T00:00:00.000Z"},
        )
        assert body["recurring"]["start_date"] == "2024-01-01"

    def test_overlapping_blocks_return_conflict(self, client, fake_db):
        response = client.post(
            "/schedules/",
            json=schedule_payload([block_payload("09:00", "10:00"), block_payload("09:30", "10:30")]),
        )
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["day"] == 1
        assert [b["start_time"] for b in detail["conflicting_blocks"]] == ["09:00", "09:30"]
        assert fake_db["schedules"].docs == []

    def test_touching_blocks_are_accepted(self, client):
        body = create(client, blocks=[block_payload("09:00", "10:00"), block_payload("10:00", "11:00")])
        assert len(body["time_blocks"]) == 2

    def test_wire_validation(self, client):
        bad_payloads = [
            schedule_payload([block_payload(start="25:00")]),
            schedule_payload([block_payload(day=7)]),
            schedule_payload([block_payload(subject="  ")]),
            schedule_payload([block_payload(type="nap")]),
            schedule_payload([block_payload(priority="urgent")]),
            schedule_payload([block_payload("10:00", "09:00")]),
            {**schedule_payload(), "time_blocks": []},
            schedule_payload(name=""),
            schedule_payload(recurring={"start_date": "not-a-date"}),
        ]
        for payload in bad_payloads:
            assert client.post("/schedules/", json=payload).status_code == 422, payload

    def test_list_with_active_filter(self, client):
        first = create(client, name="First")
        create(client, name="Second")
        client.put(f"/schedules/{first['id']}/toggle")

        names = [s["name"] for s in client.get("/schedules/").json()]
        assert sorted(names) == ["First", "Second"]
        active = client.get("/schedules/", params={"is_active": "true"}).json()
        assert [s["name"] for s in active] == ["Second"]
        inactive = client.get("/schedules/", params={"is_active": "false"}).json()
        assert [s["name"] for s in inactive] == ["First"]

    def test_other_users_schedule_is_not_found(self, client):
        from app.api.deps import get_current_user_id
        from app.main import app

        body = create(client)
        app.dependency_overrides[get_current_user_id] = lambda: "someone_else"
        assert client.get(f"/schedules/{body['id']}").status_code == 404
        assert client.delete(f"/schedules/{body['id']}").status_code == 404


class TestUpdate:

    def test_partial_update(self, client):
        body = create(client)
        response = client.put(f"/schedules/{body['id']}", json={"name": "Exam prep"})
        assert response.status_code == 200
        updated = response.json()
        assert updated["name"] == "Exam prep"
        assert updated["description"] == "Weekly study routine"
        assert updated["time_blocks"] == body["time_blocks"]

    def test_conflicting_update_is_rejected_atomically(self, client, fake_db):
        body = create(client)
        stored_before = [dict(d) for d in fake_db["schedules"].docs]
        response = client.put(
            f"/schedules/{body['id']}",
            json={
                "name": "Renamed",
                "time_blocks": [block_payload("13:00", "14:30", day=4), block_payload("14:00", "15:00", day=4)],
            },
        )
        assert response.status_code == 409
        assert response.json()["detail"]["day"] == 4
        assert fake_db["schedules"].docs == stored_before

    def test_update_missing_schedule(self, client):
        assert client.put("/schedules/missing", json={"name": "x"}).status_code == 404


class TestTimeBlocks:

    def test_add_time_block(self, client):
        body = create(client)
        response = client.put(f"/schedules/{body['id']}/time-blocks", json=block_payload("10:00", "11:00"))
        assert response.status_code == 200
        assert len(response.json()["time_blocks"]) == 2

    def test_add_overlapping_block(self, client):
        body = create(client)
        response = client.put(f"/schedules/{body['id']}/time-blocks", json=block_payload("09:30", "11:00"))
        assert response.status_code == 409

    def test_remove_time_block(self, client):
        body = create(client, blocks=[block_payload("09:00", "10:00"), block_payload("10:00", "11:00")])
        block_id = body["time_blocks"][0]["id"]
        response = client.delete(f"/schedules/{body['id']}/time-blocks/{block_id}")
        assert response.status_code == 200
        assert [b["id"] for b in response.json()["time_blocks"]] == [body["time_blocks"][1]["id"]]

    def test_remove_unknown_block_is_noop(self, client):
        body = create(client)
        response = client.delete(f"/schedules/{body['id']}/time-blocks/unknown")
        assert response.status_code == 200
        assert response.json()["time_blocks"] == body["time_blocks"]


class TestConflictsEndpoint:

    def test_reports_stored_conflicts(self, client, fake_db):
        # 검증을 거치지 않고 저장된 (레거시) 문서
        schedule = Schedule(
            user_id=TEST_USER_ID,
            name="Legacy",
            time_blocks=[
                TimeBlock(day_of_week=2, start_time="09:00", end_time="10:00", subject="A"),
                TimeBlock(day_of_week=2, start_time="09:30", end_time="10:30", subject="B"),
            ],
            recurring=RecurrenceRule(start_date=date(2024, 1, 1)),
        )
        fake_db["schedules"].docs.append(to_document(schedule))

        response = client.get(f"/schedules/{schedule.id}/conflicts")
        assert response.status_code == 200
        report = response.json()
        assert report["has_conflicts"] is True
        assert report["conflicts"][0]["day"] == 2
        assert [b["subject"] for b in report["conflicts"][0]["conflicting_blocks"]] == ["A", "B"]

    def test_no_conflicts(self, client):
        body = create(client)
        assert client.get(f"/schedules/{body['id']}/conflicts").json() == {
            "has_conflicts": False,
            "conflicts": [],
        }


class TestExceptionsAndOccurrences:

    def test_skip_and_modify(self, client):
        body = create(client)
        sid = body["id"]

        skip = client.put(
            f"/schedules/{sid}/exceptions",
            json={"date": "2024-01-08", "reason": "Holiday", "action": "skip"},
        )
        assert skip.status_code == 200
        occurrences = client.get(
            f"/schedules/{sid}/occurrences", params={"start": "2024-01-01", "end": "2024-01-15"}
        ).json()
        assert [o["date"] for o in occurrences] == ["2024-01-01", "2024-01-15"]

        modify = client.put(
            f"/schedules/{sid}/exceptions",
            json={
                "date": "2024-01-08",
                "reason": "Makeup",
                "action": "modify",
                "modified_time_blocks": [{"start_time": "09:30", "end_time": "11:00", "subject": "Makeup"}],
            },
        )
        assert modify.status_code == 200
        assert len(modify.json()["exceptions"]) == 1

        occurrences = client.get(
            f"/schedules/{sid}/occurrences", params={"start": "2024-01-01", "end": "2024-01-15"}
        ).json()
        assert [o["date"] for o in occurrences] == ["2024-01-01", "2024-01-08", "2024-01-15"]
        makeup = occurrences[1]
        assert makeup["is_modified"] is True
        assert makeup["reason"] == "Makeup"
        assert [b["subject"] for b in makeup["time_blocks"]] == ["Makeup"]

        removed = client.delete(f"/schedules/{sid}/exceptions/2024-01-08")
        assert removed.json()["exceptions"] == []

    def test_modify_without_blocks_is_rejected(self, client):
        body = create(client)
        response = client.put(
            f"/schedules/{body['id']}/exceptions",
            json={"date": "2024-01-08", "reason": "Makeup", "action": "modify"},
        )
        assert response.status_code == 400

    def test_reversed_range_is_rejected(self, client):
        body = create(client)
        response = client.get(
            f"/schedules/{body['id']}/occurrences", params={"start": "2024-01-15", "end": "2024-01-01"}
        )
        assert response.status_code == 400


class TestDeleteAndAuth:

    def test_delete(self, client):
        body = create(client)
        assert client.delete(f"/schedules/{body['id']}").status_code == 204
        assert client.get(f"/schedules/{body['id']}").status_code == 404

    def test_missing_schedule_returns_not_found(self, client):
        responses = [
            client.get("/schedules/missing"),
            client.put("/schedules/missing/toggle"),
            client.put("/schedules/missing/time-blocks", json=block_payload()),
            client.get("/schedules/missing/conflicts"),
            client.delete("/schedules/missing"),
        ]
        for response in responses:
            assert response.status_code == 404
            assert response.json() == {"detail": "Schedule not found"}

    def test_missing_token(self, anonymous_client):
        assert anonymous_client.get("/schedules/").status_code == 401

    def test_invalid_token(self, anonymous_client):
        response = anonymous_client.get("/schedules/", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_valid_token(self, anonymous_client):
        token = create_access_token("jwt_user")
        response = anonymous_client.get("/schedules/", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == []

    def test_health(self, anonymous_client):
        assert anonymous_client.get("/health").json()["status"] == "ok"
