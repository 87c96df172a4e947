"""Tests for meet status classification — window bounds and calendar-day arithmetic."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from watch_me_run.tests.conftest import EASTERN, NOW


class TestClassifyBounds:
    def test_now_is_current(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW, NOW) == MeetStatus.CURRENT

    def test_upper_bound_is_inclusive(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW + timedelta(days=3), NOW) == MeetStatus.CURRENT

    def test_one_second_past_upper_bound_is_upcoming(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW + timedelta(days=3, seconds=1), NOW) == MeetStatus.UPCOMING

    def test_lower_bound_is_current(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW - timedelta(days=6), NOW) == MeetStatus.CURRENT

    def test_one_second_before_lower_bound_is_past(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW - timedelta(days=6, seconds=1), NOW) == MeetStatus.PAST

    def test_far_future_is_upcoming(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(NOW + timedelta(days=60), NOW) == MeetStatus.UPCOMING


class TestCalendarArithmetic:
    def test_upper_bound_follows_wall_clock_across_dst(self):
        """DST starts 2026-03-08; now+3 days is 12:00 EDT, not 13:00 EDT."""
        from watch_me_run.services.meet_status import MeetStatus, classify

        now = datetime(2026, 3, 6, 12, 0, tzinfo=EASTERN)
        assert classify(datetime(2026, 3, 9, 12, 0, tzinfo=EASTERN), now) == MeetStatus.CURRENT
        assert classify(datetime(2026, 3, 9, 12, 30, tzinfo=EASTERN), now) == MeetStatus.UPCOMING

    def test_lower_bound_follows_wall_clock_across_dst(self):
        """DST ends 2026-11-01; now-6 days is 12:00 EDT on Oct 28."""
        from watch_me_run.services.meet_status import MeetStatus, classify

        now = datetime(2026, 11, 3, 12, 0, tzinfo=EASTERN)
        assert classify(datetime(2026, 10, 28, 12, 0, tzinfo=EASTERN), now) == MeetStatus.CURRENT
        assert classify(datetime(2026, 10, 28, 11, 30, tzinfo=EASTERN), now) == MeetStatus.PAST

    def test_other_zones_are_converted(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        # 2026-07-04T04:00Z is 2026-07-04T00:00-04:00, exactly now+3d
        utc_date = datetime(2026, 7, 4, 4, 0, tzinfo=timezone.utc)
        assert classify(utc_date, NOW) == MeetStatus.CURRENT
        tokyo = utc_date.astimezone(ZoneInfo("Asia/Tokyo")) + timedelta(seconds=1)
        assert classify(tokyo, NOW) == MeetStatus.UPCOMING

    def test_naive_dates_are_local(self):
        from watch_me_run.services.meet_status import MeetStatus, classify

        assert classify(datetime(2026, 7, 4, 0, 0), NOW) == MeetStatus.CURRENT
        assert classify(datetime(2026, 7, 4, 0, 1), NOW) == MeetStatus.UPCOMING


class TestMeetStatus:
    def test_meet_status_uses_classifier(self):
        from watch_me_run.models import Meet
        from watch_me_run.services.meet_status import MeetStatus

        meet = Meet(date=NOW - timedelta(days=10), name="Old Meet", level="Open")
        assert meet.status(NOW) == MeetStatus.PAST
        assert meet.to_dict(NOW)["status"] == "past"
