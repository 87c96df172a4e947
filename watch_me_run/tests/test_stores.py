"""Tests for live stores — snapshot replace, teardown reset, writes, CSV fallback."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

from watch_me_run.tests.conftest import NOW, make_meet, make_race, make_user


class TestLiveStoreLifecycle:
    def test_start_listening_fetches_snapshot(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        fake_db.store["wmr_user_races"].append(make_race(owner_id="u1", name="Mine"))
        fake_db.store["wmr_user_races"].append(make_race(owner_id="u2", name="Theirs"))

        store = UserRaceStore()
        store.start_listening("u1")
        assert [r.name for r in store.races] == ["Mine"]
        assert store.key == "u1"

    def test_snapshot_replaces_wholesale(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        first = make_race(owner_id="u1", name="First")
        fake_db.store["wmr_user_races"].append(first)
        store = UserRaceStore()
        store.start_listening("u1")

        fake_db.store["wmr_user_races"].clear()
        fake_db.store["wmr_user_races"].append(make_race(owner_id="u1", name="Second"))
        store.refresh()
        assert [r.name for r in store.races] == ["Second"]

    def test_stop_listening_resets_state_and_notifies(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        fake_db.store["wmr_user_races"].append(make_race(owner_id="u1"))
        store = UserRaceStore()
        seen = []
        store.subscribe(lambda s: seen.append(len(s.races)))
        store.start_listening("u1")
        store.stop_listening()

        assert store.races == []
        assert not store.is_listening
        assert seen == [1, 0]

    def test_fetch_failure_keeps_last_snapshot(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        fake_db.store["wmr_user_races"].append(make_race(owner_id="u1"))
        store = UserRaceStore()
        store.start_listening("u1")

        fake_db.fail = True
        assert store.refresh() is False
        assert len(store.races) == 1

    def test_observer_error_does_not_break_refresh(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore()
        good = MagicMock()
        store.subscribe(MagicMock(side_effect=ValueError("bad observer")))
        store.subscribe(good)
        store.start_listening("u1")
        good.assert_called_once_with(store)

    def test_unsubscribe(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore()
        callback = MagicMock()
        unsubscribe = store.subscribe(callback)
        unsubscribe()
        store.start_listening("u1")
        callback.assert_not_called()

    def test_registers_and_removes_poll_job(self, fake_db, scheduler):
        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore(scheduler, poll_seconds=30)
        store.start_listening("u1")
        assert scheduler.get_job("store:user_races:u1") is not None

        store.start_listening("u2")
        assert scheduler.get_job("store:user_races:u1") is None
        assert scheduler.get_job("store:user_races:u2") is not None

        store.stop_listening()
        assert scheduler.get_jobs() == []

    def test_scoped_stores_poll_separately(self, fake_db, scheduler):
        from watch_me_run.services.stores import FriendRaceStore

        alice = FriendRaceStore(scheduler, scope="alice")
        bob = FriendRaceStore(scheduler, scope="bob")
        alice.start_listening("f1")
        bob.start_listening("f1")
        assert len(scheduler.get_jobs()) == 2

        bob.stop_listening()
        assert scheduler.get_job("store:friend_races:alice:f1") is not None
        assert scheduler.get_job("store:friend_races:bob:f1") is None

    def test_poll_job_is_a_coroutine(self, fake_db, scheduler):
        import asyncio
        import inspect

        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore(scheduler)
        store.start_listening("u1")
        job = scheduler.get_job("store:user_races:u1")
        assert inspect.iscoroutinefunction(job.func)

        fake_db.store["wmr_user_races"].append(make_race(owner_id="u1", id="r1"))
        asyncio.run(job.func())
        assert [r.id for r in store.races] == ["r1"]

    def test_future_races(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        fake_db.store["wmr_user_races"].extend([
            make_race(owner_id="u1", id="old", date=(NOW - timedelta(days=1)).isoformat()),
            make_race(owner_id="u1", id="new"),
        ])
        store = UserRaceStore()
        store.start_listening("u1")
        assert [r.id for r in store.future_races(NOW)] == ["new"]


class TestUserRaceWrites:
    def test_add_or_update_merges_by_id(self, fake_db):
        from watch_me_run.models import UserRace
        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore()
        race = UserRace(id="r1", name="Peachtree", distance="10K", date=NOW + timedelta(days=3))
        assert store.add_or_update(race, "u1")["success"] is True

        race.name = "Peachtree Road Race"
        store.add_or_update(race, "u1")
        rows = fake_db.store["wmr_user_races"]
        assert len(rows) == 1
        assert rows[0]["name"] == "Peachtree Road Race"
        assert rows[0]["owner_id"] == "u1"
        assert rows[0]["watch_url"] is None

    def test_resave_clears_removed_optionals(self, fake_db):
        from watch_me_run.models import UserRace
        from watch_me_run.services.stores import UserRaceStore

        store = UserRaceStore()
        race = UserRace(id="r1", name="Peachtree", distance="10K", date=NOW + timedelta(days=3),
                        instructions="Bib pickup Friday", comments="Goal: sub 40")
        store.add_or_update(race, "u1")

        race.instructions = None
        race.comments = None
        store.add_or_update(race, "u1")
        row = fake_db.store["wmr_user_races"][0]
        assert row["instructions"] is None
        assert row["comments"] is None

    def test_write_without_uid_is_rejected(self, fake_db):
        from watch_me_run.models import UserRace
        from watch_me_run.services.stores import UserRaceStore

        race = UserRace(name="Peachtree", distance="10K", date=NOW)
        result = UserRaceStore().add_or_update(race, "")
        assert result == {"success": False, "message": "Not signed in"}
        assert fake_db.store["wmr_user_races"] == []

    def test_write_failure_returns_error(self, fake_db):
        from watch_me_run.models import UserRace
        from watch_me_run.services.stores import UserRaceStore

        fake_db.fail = True
        race = UserRace(name="Peachtree", distance="10K", date=NOW)
        result = UserRaceStore().add_or_update(race, "u1")
        assert result["success"] is False
        assert "connection refused" in result["message"]

    def test_delete_only_touches_owner_rows(self, fake_db):
        from watch_me_run.services.stores import UserRaceStore

        fake_db.store["wmr_user_races"].extend([
            make_race(owner_id="u1", id="r1"),
            make_race(owner_id="u2", id="r1"),
        ])
        assert UserRaceStore().delete("r1", "u1")["success"] is True
        assert [r["owner_id"] for r in fake_db.store["wmr_user_races"]] == ["u2"]


class TestMeetStore:
    def test_reads_meets_from_table(self, fake_db):
        from watch_me_run.services.stores import MeetStore

        fake_db.store["wmr_meets"].extend([
            make_meet(name="Penn Relays", priority=2),
            make_meet(name="Drake Relays", priority=1),
        ])
        store = MeetStore()
        store.start()
        assert [m.name for m in store.meets] == ["Drake Relays", "Penn Relays"]
        assert store.meets[0].watch_url is None

    def test_falls_back_to_csv_when_unconfigured(self, tmp_path):
        from watch_me_run.services.stores import MeetStore

        path = tmp_path / "meets.csv"
        path.write_text("Date,Name,Level,Priority\n7/2/26,CSV Meet,Open,1\n")
        with patch("watch_me_run.supabase_client.is_configured", return_value=False):
            store = MeetStore(csv_path=path)
            store.start()
        assert [m.name for m in store.meets] == ["CSV Meet"]

    def test_falls_back_to_csv_on_error(self, fake_db, tmp_path):
        from watch_me_run.services.stores import MeetStore

        path = tmp_path / "meets.csv"
        path.write_text("Date,Name,Level,Priority\n7/2/26,CSV Meet,Open,1\n")
        fake_db.fail = True
        store = MeetStore(csv_path=path)
        store.start()
        assert [m.name for m in store.meets] == ["CSV Meet"]

    def test_partitions_by_status(self, fake_db):
        from watch_me_run.services.stores import MeetStore

        fake_db.store["wmr_meets"].extend([
            make_meet(name="Past", date=(NOW - timedelta(days=7)).isoformat()),
            make_meet(name="Current", date=(NOW + timedelta(days=1)).isoformat()),
            make_meet(name="Upcoming", date=(NOW + timedelta(days=10)).isoformat()),
        ])
        store = MeetStore()
        store.start()
        assert [m.name for m in store.past_meets(NOW)] == ["Past"]
        assert [m.name for m in store.current_meets(NOW)] == ["Current"]
        assert [m.name for m in store.upcoming_meets(NOW)] == ["Upcoming"]


class TestFeaturedMeetStore:
    def test_lists_featured_meets_and_events(self, fake_db):
        from watch_me_run.services.stores import FeaturedMeetStore

        fake_db.store["wmr_featured_meets"].append({
            "id": "fm1", "name": "Olympic Trials", "date": NOW.isoformat(),
            "location": "Eugene, OR", "watch_url": "https://peacock.example/trials",
        })
        fake_db.store["wmr_featured_events"].extend([
            {"id": "e2", "featured_meet_id": "fm1", "name": "Women's 5000m",
             "date": (NOW + timedelta(hours=3)).isoformat()},
            {"id": "e1", "featured_meet_id": "fm1", "name": "Men's 1500m",
             "date": (NOW + timedelta(hours=1)).isoformat()},
            {"id": "e3", "featured_meet_id": "fm1", "name": "Decathlon", "date": "Day 2, TBA"},
        ])
        store = FeaturedMeetStore()
        store.start()

        assert [m.name for m in store.featured_meets] == ["Olympic Trials"]
        events = store.get_featured_events("fm1")
        assert [e.name for e in events][:2] == ["Men's 1500m", "Women's 5000m"]
        tba = next(e for e in events if e.id == "e3")
        assert tba.start is None
        assert tba.raw_date == "Day 2, TBA"

    def test_event_read_failure_returns_empty(self, fake_db):
        from watch_me_run.services.stores import FeaturedMeetStore

        fake_db.fail = True
        assert FeaturedMeetStore().get_featured_events("fm1") == []


class TestUserDetailsStore:
    def test_missing_row_is_none(self, fake_db):
        from watch_me_run.services.stores import UserDetailsStore

        store = UserDetailsStore()
        store.start_listening("u1")
        assert store.details is None

    def test_reads_profile(self, fake_db):
        from datetime import date

        from watch_me_run.services.stores import UserDetailsStore

        fake_db.store["wmr_users"].append(make_user(id="u1"))
        store = UserDetailsStore()
        store.start_listening("u1")
        assert store.details.name == "Sam Runner"
        assert store.details.age(date(2026, 5, 19)) == 35
        assert store.details.age(date(2026, 5, 20)) == 36

    def test_empty_uid_is_ignored(self, fake_db):
        from watch_me_run.services.stores import UserDetailsStore

        store = UserDetailsStore()
        store.start_listening("")
        assert not store.is_listening

    def test_save_derives_search_name(self, fake_db):
        from watch_me_run.models import UserDetails
        from watch_me_run.services.stores import UserDetailsStore

        result = UserDetailsStore().save(UserDetails(id="u1", name="  Ada Lovelace "), "u1")
        assert result == {"success": True}
        row = fake_db.store["wmr_users"][0]
        assert row["name"] == "Ada Lovelace"
        assert row["search_name_lower"] == "ada lovelace"

    def test_blank_name_clears_search_name(self, fake_db):
        from watch_me_run.models import UserDetails
        from watch_me_run.services.stores import UserDetailsStore

        store = UserDetailsStore()
        store.save(UserDetails(id="u1", name="Ada Lovelace"), "u1")
        store.save(UserDetails(id="u1", name="   "), "u1")

        row = fake_db.store["wmr_users"][0]
        assert row["name"] == ""
        assert row["search_name_lower"] is None

    def test_save_without_uid_fails(self, fake_db):
        from watch_me_run.models import UserDetails
        from watch_me_run.services.stores import UserDetailsStore

        result = UserDetailsStore().save(UserDetails(id="", name="Ada"), "")
        assert result["success"] is False
        assert fake_db.store["wmr_users"] == []


class TestWatchingStore:
    def test_toggle_friend_round_trip(self, fake_db):
        from watch_me_run.services.stores import WatchingStore

        store = WatchingStore()
        store.start_listening("u1")

        assert store.toggle_friend_watching("u1", "f1") == {"success": True, "watching": True}
        assert store.watched_friend_ids == {"f1"}

        assert store.toggle_friend_watching("u1", "f1") == {"success": True, "watching": False}
        assert store.watched_friend_ids == set()

    def test_toggle_featured_event_stores_row(self, fake_db):
        from watch_me_run.services.stores import WatchingStore

        store = WatchingStore()
        store.start_listening("u1")
        result = store.toggle_featured_event_watching(
            "u1", "fm1_::e1", "fm1", "e1", "Men's 1500m", NOW + timedelta(hours=1),
        )
        assert result["watching"] is True
        assert store.watched_featured_event_keys == {"fm1_::e1"}
        assert store.watched_featured_events["fm1_::e1"]["event_name"] == "Men's 1500m"

    def test_toggle_failure_leaves_state(self, fake_db):
        from watch_me_run.services.stores import WatchingStore

        store = WatchingStore()
        store.start_listening("u1")
        fake_db.fail = True
        result = store.toggle_friend_watching("u1", "f1")
        assert result["success"] is False
        assert store.watched_friend_ids == set()
