"""Tests for trigger admission rules and the scheduled tagging sweep."""

import json

import pytest

from ai_tagging.db.models import AssetObject, TaggingJob
from ai_tagging.schemas.tagging import ApplicationScope, TeamTaggingSettings
from ai_tagging.services.settings_service import TeamSettingsService
from ai_tagging.services.tagging.queue import TaggingQueue
from ai_tagging.services.tagging.scheduling import ScheduledTagger, check_admission


def _settings(**overrides) -> TeamTaggingSettings:
    return TeamTaggingSettings.model_validate(overrides)


def _asset(path: str | None = "/Marketing/Campaigns/Summer") -> AssetObject:
    return AssetObject(
        id="asset-1", team_id="team-1", external_id="e-1", name="a.png", materialized_path=path
    )


def _enable_scheduled(db, team_id: str = "team-1", **extra) -> None:
    service = TeamSettingsService(db)
    service.set(team_id, "trigger_timing", {"scheduled_tagging": True})
    for key, value in extra.items():
        service.set(team_id, key, value)


class TestApplicationScope:
    """Test folder scope matching."""

    def test_all_contains_everything(self):
        assert ApplicationScope().contains(None) is True
        assert ApplicationScope().contains("/anything") is True

    def test_selected_folder_covers_subfolders(self):
        scope = ApplicationScope(scope_type="specific", selected_folders=["/Marketing/"])

        assert scope.contains("/Marketing") is True
        assert scope.contains("/Marketing/Campaigns/Summer") is True
        assert scope.contains("/MarketingArchive") is False
        assert scope.contains("/Product") is False
        assert scope.contains(None) is False

    def test_specific_with_no_folders_contains_nothing(self):
        assert ApplicationScope(scope_type="specific").contains("/Marketing") is False

    def test_camel_case_input(self):
        scope = ApplicationScope.model_validate(
            {"scopeType": "specific", "selectedFolders": ["/Product"]}
        )

        assert scope.contains("/Product/Shoes") is True


class TestCheckAdmission:
    """Test which triggers team settings accept."""

    def test_defaults_accept_realtime(self):
        assert check_admission(_settings(), _asset(), "default") is None

    def test_tagging_disabled_refuses_realtime_and_scheduled(self):
        settings = _settings(
            is_tagging_enabled=False, trigger_timing={"scheduled_tagging": True}
        )

        assert check_admission(settings, _asset(), "default").message == (
            "Tagging is not enabled for this team"
        )
        assert check_admission(settings, _asset(), "scheduled") is not None

    def test_tagging_disabled_still_accepts_manual_and_test(self):
        settings = _settings(is_tagging_enabled=False)

        assert check_admission(settings, _asset(), "manual") is None
        assert check_admission(settings, _asset(), "test") is None

    def test_realtime_trigger_off(self):
        settings = _settings(trigger_timing={"auto_realtime_tagging": False})

        reason = check_admission(settings, _asset(), "default")

        assert reason.message == "Tagging auto realtime is not enabled"
        assert reason.out_of_scope is False
        assert check_admission(settings, _asset(), "manual") is None

    def test_scheduled_off_by_default(self):
        reason = check_admission(_settings(), _asset(), "scheduled")

        assert reason.message == "Scheduled tagging is not enabled"

    def test_manual_trigger_off(self):
        settings = _settings(trigger_timing={"manual_trigger_tagging": False})

        assert check_admission(settings, _asset(), "manual").message == (
            "Manual tagging is not enabled"
        )

    def test_out_of_scope_asset(self):
        settings = _settings(
            application_scope={"scope_type": "specific", "selected_folders": ["/Product"]}
        )

        reason = check_admission(settings, _asset(), "default")

        assert reason.out_of_scope is True
        assert "not in the selected folders" in reason.message
        # Manual and test jobs ignore the scope
        assert check_admission(settings, _asset(), "manual") is None
        assert check_admission(settings, _asset(), "test") is None


class TestScheduledTagger:
    """Test the scheduled sweep."""

    def test_enqueues_scheduled_jobs_with_team_options(self, db, asset_factory):
        first = asset_factory(db, external_id="ext-1")
        second = asset_factory(db, external_id="ext-2")
        db.commit()
        _enable_scheduled(db, recognition_accuracy="broad")

        report = ScheduledTagger(db).run()

        assert report.enqueued == 2
        assert [r.team_id for r in report.results] == ["team-1"]
        jobs = db.query(TaggingJob).filter_by(team_id="team-1").all()
        assert {job.asset_id for job in jobs} == {first.id, second.id}
        assert {job.task_type for job in jobs} == {"scheduled"}
        assert {job.status for job in jobs} == {"pending"}
        assert json.loads(jobs[0].options)["recognition_accuracy"] == "broad"

    def test_teams_without_scheduled_tagging_skipped(self, db, asset_factory):
        asset_factory(db)
        asset_factory(db, team_id="team-2", external_id="ext-2")
        db.commit()
        TeamSettingsService(db).set("team-1", "tagging_mode", "direct")
        _enable_scheduled(db, team_id="team-2", is_tagging_enabled=False)

        report = ScheduledTagger(db).run()

        assert report.results == []
        assert db.query(TaggingJob).count() == 0

    def test_in_flight_assets_skipped(self, db, asset_factory):
        busy = asset_factory(db, external_id="ext-1")
        idle = asset_factory(db, external_id="ext-2")
        db.commit()
        TaggingQueue(db).enqueue("team-1", busy.id)
        _enable_scheduled(db)

        result = ScheduledTagger(db).run().results[0]

        assert result.enqueued == 1
        assert result.skipped_in_flight == 1
        scheduled = db.query(TaggingJob).filter_by(task_type="scheduled").all()
        assert [job.asset_id for job in scheduled] == [idle.id]

    def test_completed_assets_are_tagged_again(self, db, asset):
        queue = TaggingQueue(db)
        job = queue.enqueue("team-1", asset.id)
        queue.claim_batch()
        queue.complete(job.id, {"predictions": [], "scored_tags": []})
        _enable_scheduled(db)

        assert ScheduledTagger(db).run().enqueued == 1

    def test_application_scope_filters_assets(self, db, asset_factory):
        asset_factory(db, external_id="ext-1", materialized_path="/Marketing/Campaigns")
        in_scope = asset_factory(db, external_id="ext-2", materialized_path="/Product/Shoes")
        db.commit()
        _enable_scheduled(
            db, application_scope={"scope_type": "specific", "selected_folders": ["/Product"]}
        )

        result = ScheduledTagger(db).run().results[0]

        assert result.enqueued == 1
        assert result.skipped_out_of_scope == 1
        assert db.query(TaggingJob).one().asset_id == in_scope.id

    @pytest.mark.parametrize("batch_size", [1, 2])
    def test_batch_size_caps_jobs_per_team(self, db, asset_factory, batch_size):
        for index in range(3):
            asset_factory(db, external_id=f"ext-{index}")
        db.commit()
        _enable_scheduled(db)

        report = ScheduledTagger(db, batch_size=batch_size).run()

        assert report.enqueued == batch_size
        assert db.query(TaggingJob).count() == batch_size
