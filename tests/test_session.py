"""Tests for request supersession."""

from __future__ import annotations

from facewarp.compositor import Compositor
from facewarp.session import ModifySession


class TestModifySession:
    def test_generations_increase(self, fake_detector) -> None:
        session = ModifySession(Compositor(fake_detector))
        assert session.generation == 0
        assert session.begin() == 1
        assert session.begin() == 2
        assert session.is_current(2)
        assert not session.is_current(1)

    def test_submit_returns_current_result(self, gradient_image, fake_detector) -> None:
        session = ModifySession(Compositor(fake_detector))
        result = session.submit(gradient_image, 1.2, 1.0)
        assert result is not None
        assert result.success
        assert result.generation == 1

    def test_failed_result_still_delivered(self, gradient_image, fake_detector) -> None:
        session = ModifySession(Compositor(fake_detector))
        result = session.submit(gradient_image, 9.0, 1.0)
        assert result is not None
        assert not result.success

    def test_superseded_result_dropped(self, gradient_image, detection, caplog) -> None:
        session = None

        class SlowDetector:
            def detect(self, image):
                # A newer slider value arrives while this request is in flight
                session.begin()
                return detection

        session = ModifySession(Compositor(SlowDetector()))
        with caplog.at_level("INFO", logger="facewarp.session"):
            assert session.submit(gradient_image, 1.2, 1.0) is None
        assert "superseded" in caplog.text
        assert session.generation == 2

    async def test_submit_async_superseded(self, gradient_image, detection) -> None:
        session = None

        class AsyncDetector:
            async def detect(self, image):
                session.begin()
                return detection

        session = ModifySession(Compositor(AsyncDetector()))
        assert await session.submit_async(gradient_image, 1.2, 1.0) is None

    async def test_submit_async_current(self, gradient_image, fake_detector) -> None:
        session = ModifySession(Compositor(fake_detector))
        result = await session.submit_async(gradient_image, 1.2, 1.0)
        assert result is not None and result.generation == 1
