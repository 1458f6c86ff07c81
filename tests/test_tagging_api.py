"""Tests for the tagging job API endpoints."""

import json

from ai_tagging.db.models import TaggingJob
from ai_tagging.services.settings_service import TeamSettingsService
from ai_tagging.services.tagging.queue import TaggingQueue


class TestEnqueueJob:
    """Tests for POST /api/tagging/jobs."""

    def test_enqueue_returns_201(self, client, db, asset):
        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        job = db.get(TaggingJob, data["job_id"])
        assert job.asset_id == asset.id
        assert job.task_type == "default"

    def test_unknown_asset_returns_404(self, client):
        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": "missing"}
        )

        assert response.status_code == 404

    def test_asset_of_other_team_returns_404(self, client, asset):
        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-2", "asset_id": asset.id}
        )

        assert response.status_code == 404

    def test_options_default_to_team_settings(self, client, db, asset):
        TeamSettingsService(db).set("team-1", "recognition_accuracy", "precise")

        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        options = json.loads(db.get(TaggingJob, response.json()["job_id"]).options)
        assert options["recognition_accuracy"] == "precise"

    def test_request_options_override_team_settings(self, client, db, asset):
        TeamSettingsService(db).set("team-1", "recognition_accuracy", "precise")

        response = client.post(
            "/api/tagging/jobs",
            json={
                "team_id": "team-1",
                "asset_id": asset.id,
                "recognition_accuracy": "broad",
                "matching_sources": {"tagKeywords": False},
                "task_type": "test",
            },
        )

        job = db.get(TaggingJob, response.json()["job_id"])
        options = json.loads(job.options)
        assert options["recognition_accuracy"] == "broad"
        assert options["matching_sources"]["tag_keywords"] is False
        assert job.task_type == "test"

    def test_tagging_disabled_skips_realtime_enqueue(self, client, db, asset):
        TeamSettingsService(db).set("team-1", "is_tagging_enabled", False)

        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        assert response.status_code == 200
        assert response.json() == {
            "job_id": None,
            "status": None,
            "message": "Tagging is not enabled for this team",
        }
        assert db.query(TaggingJob).count() == 0

    def test_tagging_disabled_still_accepts_manual(self, client, db, asset):
        TeamSettingsService(db).set("team-1", "is_tagging_enabled", False)

        response = client.post(
            "/api/tagging/jobs",
            json={"team_id": "team-1", "asset_id": asset.id, "task_type": "manual"},
        )

        assert response.status_code == 201
        assert db.get(TaggingJob, response.json()["job_id"]).task_type == "manual"

    def test_realtime_trigger_off_skips_default(self, client, db, asset):
        TeamSettingsService(db).set(
            "team-1", "trigger_timing", {"auto_realtime_tagging": False}
        )

        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        assert response.status_code == 200
        assert response.json()["job_id"] is None
        assert db.query(TaggingJob).count() == 0

    def test_asset_outside_scope_returns_202(self, client, db, asset):
        TeamSettingsService(db).set(
            "team-1",
            "application_scope",
            {"scope_type": "specific", "selected_folders": ["/Product"]},
        )

        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        assert response.status_code == 202
        assert response.json()["job_id"] is None
        assert "not in the selected folders" in response.json()["message"]
        assert db.query(TaggingJob).count() == 0

    def test_asset_inside_scope_is_enqueued(self, client, db, asset):
        TeamSettingsService(db).set(
            "team-1",
            "application_scope",
            {"scope_type": "specific", "selected_folders": ["/Marketing"]},
        )

        response = client.post(
            "/api/tagging/jobs", json={"team_id": "team-1", "asset_id": asset.id}
        )

        assert response.status_code == 201
        assert response.json()["status"] == "pending"

    def test_invalid_task_type_returns_422(self, client, asset):
        response = client.post(
            "/api/tagging/jobs",
            json={"team_id": "team-1", "asset_id": asset.id, "task_type": "nightly"},
        )

        assert response.status_code == 422


class TestJobStatus:
    """Tests for GET /api/tagging/jobs/{job_id}/status."""

    def test_pending_job(self, client, db, asset):
        job = TaggingQueue(db).enqueue("team-1", asset.id)

        response = client.get(f"/api/tagging/jobs/{job.id}/status")

        assert response.status_code == 200
        data = response.json()
        assert data["job_id"] == job.id
        assert data["status"] == "pending"
        assert data["result"] is None
        assert data["duration_ms"] is None

    def test_completed_job_has_result_and_duration(self, client, db, asset):
        queue = TaggingQueue(db)
        job = queue.enqueue("team-1", asset.id)
        queue.claim_batch()
        queue.complete(job.id, {"predictions": [], "scored_tags": []})

        data = client.get(f"/api/tagging/jobs/{job.id}/status").json()

        assert data["status"] == "completed"
        assert data["result"] == {"predictions": [], "scored_tags": []}
        assert data["duration_ms"] >= 0

    def test_team_mismatch_returns_404(self, client, db, asset):
        job = TaggingQueue(db).enqueue("team-1", asset.id)

        response = client.get(f"/api/tagging/jobs/{job.id}/status", params={"team_id": "team-2"})

        assert response.status_code == 404

    def test_unknown_job_returns_404(self, client):
        assert client.get("/api/tagging/jobs/nope/status").status_code == 404


class TestRetryJob:
    """Tests for POST /api/tagging/jobs/{job_id}/retry."""

    def test_failed_job_reset_to_pending(self, client, db, asset):
        queue = TaggingQueue(db)
        job = queue.enqueue("team-1", asset.id)
        queue.claim_batch()
        queue.fail(job.id, "boom")

        response = client.post(f"/api/tagging/jobs/{job.id}/retry")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["result"] is None

    def test_pending_job_returns_409(self, client, db, asset):
        job = TaggingQueue(db).enqueue("team-1", asset.id)

        response = client.post(f"/api/tagging/jobs/{job.id}/retry")

        assert response.status_code == 409
        data = response.json()
        assert data["error_code"] == "INVALID_STATE_TRANSITION"
        assert data["status"] == "pending"

    def test_unknown_job_returns_404(self, client):
        response = client.post("/api/tagging/jobs/nope/retry")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"


class TestProcessQueue:
    """Tests for POST /api/tagging/process-queue."""

    def test_missing_key_returns_401(self, client, mock_dispatcher):
        response = client.post("/api/tagging/process-queue")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error_code"] == "UNAUTHORIZED"
        mock_dispatcher.tick.assert_not_called()

    def test_wrong_key_returns_401(self, client, mock_dispatcher):
        response = client.post(
            "/api/tagging/process-queue", headers={"Authorization": "Bearer wrong"}
        )

        assert response.status_code == 401
        mock_dispatcher.tick.assert_not_called()

    def test_unconfigured_key_returns_500(self, client, internal_headers, monkeypatch):
        settings = client.app.state.settings.model_copy(update={"internal_api_key": None})
        monkeypatch.setattr(client.app.state, "settings", settings)

        response = client.post("/api/tagging/process-queue", headers=internal_headers)

        assert response.status_code == 500

    def test_ticks_dispatcher(self, client, internal_headers, mock_dispatcher):
        response = client.post("/api/tagging/process-queue", headers=internal_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "processing": 2, "skipped": 1}
        mock_dispatcher.tick.assert_awaited_once_with(30)


class TestProcessScheduled:
    """Tests for POST /api/tagging/process-scheduled."""

    def test_missing_key_returns_401(self, client):
        assert client.post("/api/tagging/process-scheduled").status_code == 401

    def test_enqueues_for_opted_in_teams(self, client, db, asset, internal_headers):
        TeamSettingsService(db).set("team-1", "trigger_timing", {"scheduled_tagging": True})

        response = client.post("/api/tagging/process-scheduled", headers=internal_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "processed_teams": 1,
            "enqueued": 1,
            "results": [
                {
                    "team_id": "team-1",
                    "enqueued": 1,
                    "skipped_in_flight": 0,
                    "skipped_out_of_scope": 0,
                }
            ],
        }
        job = db.query(TaggingJob).one()
        assert job.asset_id == asset.id
        assert job.task_type == "scheduled"

    def test_no_opted_in_teams(self, client, db, asset, internal_headers):
        TeamSettingsService(db).set("team-1", "tagging_mode", "direct")

        response = client.post("/api/tagging/process-scheduled", headers=internal_headers)

        assert response.json() == {
            "success": True,
            "processed_teams": 0,
            "enqueued": 0,
            "results": [],
        }
        assert db.query(TaggingJob).count() == 0
