"""
test_render.py — Unit Tests for the Render Service & Poller
=============================================================

Covers the mock render simulator, status mapping, timeline building and
the project/render-log updates driven by status results. No network:
every test runs without a Shotstack key.

Run:
    cd backend
    python -m pytest tests/test_render.py -v
"""

import sys
import os
import asyncio

import httpx
import pytest
from celery.exceptions import Retry

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import Notification, RenderLog
from services.render import (
    map_render_status, new_mock_render_id, simulate_mock_status, is_mock_render_id,
    build_timeline, start_render, apply_render_status, begin_tracking,
)
from services.tasks import poll_render_status_task
from tests.conftest import USER_ID, add_project


SCENES = [
    {"scene": "Sunrise", "videoUrl": "https://cdn.example.com/a.mp4", "duration": 4},
    {"scene": "City", "videoUrl": "https://cdn.example.com/b.mp4", "duration": 6},
    {"scene": "Sunset", "videoUrl": "https://cdn.example.com/c.mp4"},
]


# ═════════════════════════════════════════════════════════════
# 1. MOCK RENDER SIMULATOR
# ═════════════════════════════════════════════════════════════

class TestMockRenders:

    def test_mock_id_shape(self):
        render_id = new_mock_render_id(now=1700000000.0)
        assert render_id.startswith("mock-1700000000000-")
        assert is_mock_render_id(render_id)
        assert not is_mock_render_id("c0ffee-1234")

    def test_steps_through_labels(self):
        """queued → rendering → saving → done as time passes."""
        start = 1700000000.0
        render_id = new_mock_render_id(now=start)

        assert simulate_mock_status(render_id, now=start + 1)["status"] == "queued"
        assert simulate_mock_status(render_id, now=start + 6)["status"] == "rendering"
        assert simulate_mock_status(render_id, now=start + 16)["status"] == "saving"

        done = simulate_mock_status(render_id, now=start + 26)
        assert done["status"] == "done"
        assert done["url"].endswith(".mp4")

    def test_threshold_boundaries(self):
        start = 1700000000.0
        render_id = new_mock_render_id(now=start)
        assert simulate_mock_status(render_id, now=start + 5)["status"] == "rendering"
        assert simulate_mock_status(render_id, now=start + 15)["status"] == "saving"
        assert simulate_mock_status(render_id, now=start + 25)["status"] == "done"

    def test_malformed_id_fails(self):
        result = simulate_mock_status("mock-notanumber-abc")
        assert result["status"] == "failed"
        assert result["error"]


# ═════════════════════════════════════════════════════════════
# 2. STATUS MAPPING & TIMELINE
# ═════════════════════════════════════════════════════════════

class TestStatusMapping:

    @pytest.mark.parametrize("provider,expected", [
        ("queued", "pending"),
        ("fetching", "processing"),
        ("rendering", "processing"),
        ("saving", "processing"),
        ("done", "completed"),
        ("failed", "failed"),
        ("something-new", "processing"),
        (None, "processing"),
    ])
    def test_map(self, provider, expected):
        assert map_render_status(provider) == expected


class TestTimeline:

    def test_one_clip_per_scene_back_to_back(self):
        request = build_timeline(SCENES)
        clips = request["timeline"]["tracks"][0]["clips"]

        assert len(clips) == 3
        assert [c["start"] for c in clips] == [0, 4, 10]
        assert clips[2]["length"] == 5  # default duration
        assert request["output"] == {"format": "mp4", "resolution": "sd"}

    def test_transitions(self):
        clips = build_timeline(SCENES)["timeline"]["tracks"][0]["clips"]
        assert clips[0]["transition"] == {"in": "fade"}
        assert clips[1]["transition"] == {"in": "slideLeft"}
        assert clips[2]["transition"] == {"in": "slideLeft", "out": "fade"}

    def test_captions_and_soundtrack(self):
        request = build_timeline(SCENES, has_captions=True, audio_url="https://cdn.example.com/v.mp3")
        tracks = request["timeline"]["tracks"]

        assert len(tracks) == 2
        assert tracks[1]["clips"][0]["asset"]["text"] == "Sunrise"
        assert request["timeline"]["soundtrack"]["src"] == "https://cdn.example.com/v.mp3"

    def test_no_scenes_raises(self):
        with pytest.raises(ValueError):
            build_timeline([])


# ═════════════════════════════════════════════════════════════
# 3. PROJECT STATE
# ═════════════════════════════════════════════════════════════

class TestProjectState:

    def test_start_render_in_mock_mode(self, db, profile):
        project = add_project(db)
        render_id = asyncio.run(start_render(db, project, SCENES))

        assert is_mock_render_id(render_id)
        assert project.status == "processing"
        assert project.render_id == render_id

        log = db.query(RenderLog).filter(RenderLog.render_id == render_id).one()
        assert log.status == "processing"
        assert log.meta == {"mock": True}

    def test_scenes_without_media_still_render_in_mock_mode(self, db, profile):
        project = add_project(db)
        render_id = asyncio.run(start_render(db, project, [{"scene": "Intro", "keywords": ["ocean"]}]))
        assert is_mock_render_id(render_id)

    def test_start_render_without_scenes_marks_failed(self, db, profile):
        project = add_project(db)
        with pytest.raises(ValueError):
            asyncio.run(start_render(db, project, []))
        assert project.status == "failed"
        assert project.error_message

    def test_completed_status_updates_project_and_log(self, db, profile):
        project = add_project(db)
        begin_tracking(db, project, "render-123")

        status = apply_render_status(db, project, {"status": "done", "url": "https://cdn.example.com/out.mp4"})

        assert status == "completed"
        assert project.video_url == "https://cdn.example.com/out.mp4"
        log = db.query(RenderLog).filter(RenderLog.render_id == "render-123").one()
        assert log.status == "completed"
        assert log.completed_at is not None
        assert log.duration is not None

        titles = [n.title for n in db.query(Notification).filter(Notification.user_id == USER_ID)]
        assert titles == ["Video Ready"]

    def test_failure_notifies_once(self, db, profile):
        project = add_project(db)
        begin_tracking(db, project, "render-456")

        apply_render_status(db, project, {"status": "failed", "error": "Bad asset"})
        apply_render_status(db, project, {"status": "failed", "error": "Bad asset"})

        assert project.status == "failed"
        assert project.error_message == "Bad asset"
        notes = db.query(Notification).filter(Notification.title == "Video Generation Failed").all()
        assert len(notes) == 1

    def test_done_without_url_keeps_processing(self, db, profile):
        project = add_project(db)
        begin_tracking(db, project, "render-789")
        assert apply_render_status(db, project, {"status": "done", "url": None}) == "processing"


# ═════════════════════════════════════════════════════════════
# 4. CELERY POLLER
# ═════════════════════════════════════════════════════════════

class TestPollRenderStatusTask:

    def test_finished_render_returns_result(self, session_scope_db, profile):
        db = session_scope_db
        project = add_project(db)
        begin_tracking(db, project, new_mock_render_id(now=0))  # long finished

        result = poll_render_status_task(project.id)

        assert result["status"] == "completed"
        assert result["video_url"]

    def test_running_render_is_retried(self, session_scope_db, profile):
        db = session_scope_db
        project = add_project(db)
        begin_tracking(db, project, new_mock_render_id())

        with pytest.raises(Retry):
            poll_render_status_task(project.id)

    def test_gives_up_after_max_attempts(self, session_scope_db, profile, monkeypatch):
        db = session_scope_db
        project = add_project(db)
        begin_tracking(db, project, new_mock_render_id())
        monkeypatch.setattr(poll_render_status_task, "max_retries", 0)

        result = poll_render_status_task(project.id)

        assert result["status"] == "failed"
        db.refresh(project)
        assert project.status == "failed"
        assert project.error_message == "Render timed out"

    def test_network_error_is_retried(self, session_scope_db, profile, monkeypatch):
        import services.render as render

        async def connection_reset(render_id):
            raise httpx.ConnectError("connection reset")

        db = session_scope_db
        project = add_project(db)
        begin_tracking(db, project, new_mock_render_id())
        monkeypatch.setattr(render, "fetch_render_status", connection_reset)

        with pytest.raises(Retry):
            poll_render_status_task(project.id)
        db.refresh(project)
        assert project.status == "processing"

    def test_network_errors_still_time_out(self, session_scope_db, profile, monkeypatch):
        import services.render as render

        async def connection_reset(render_id):
            raise httpx.ConnectError("connection reset")

        db = session_scope_db
        project = add_project(db)
        begin_tracking(db, project, new_mock_render_id())
        monkeypatch.setattr(render, "fetch_render_status", connection_reset)
        monkeypatch.setattr(poll_render_status_task, "max_retries", 0)

        assert poll_render_status_task(project.id)["status"] == "failed"
        db.refresh(project)
        assert project.error_message == "Render timed out"

    def test_unknown_project(self, session_scope_db):
        assert poll_render_status_task("missing")["error"] == "Project not found"
