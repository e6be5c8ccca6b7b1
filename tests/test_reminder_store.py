"""Tests for the SQLModel reminder store."""

from __future__ import annotations

from datetime import date, timedelta

from habitify.services.preferences import Channel
from habitify.services.streaks import StreakData

TODAY = date(2024, 3, 15)


class TestSlotClaims:
    def test_claim_is_insert_if_absent(self, store):
        assert store.claim_slot("reminder:1", TODAY) is True
        assert store.claim_slot("reminder:1", TODAY) is False

    def test_claims_are_per_local_date(self, store):
        assert store.claim_slot("reminder:1", TODAY)
        assert store.claim_slot("reminder:1", TODAY + timedelta(days=1))

    def test_release_allows_reclaim(self, store):
        store.claim_slot("streak:abc", TODAY)
        store.release_slot("streak:abc", TODAY)

        assert store.claim_slot("streak:abc", TODAY)

    def test_release_of_unknown_slot_is_noop(self, store):
        store.release_slot("reminder:404", TODAY)

    def test_prune_drops_claims_before_cutoff(self, store):
        days = [TODAY - timedelta(days=offset) for offset in range(30)]
        for day in days:
            store.claim_slot("reminder:1:email", day)

        removed = store.prune_claims(TODAY - timedelta(days=1))

        assert removed == 28
        # Retained dates are still claimed; pruned ones can be claimed again.
        assert store.claim_slot("reminder:1:email", TODAY) is False
        assert store.claim_slot("reminder:1:email", TODAY - timedelta(days=1)) is False
        assert store.claim_slot("reminder:1:email", TODAY - timedelta(days=2)) is True

    def test_prune_with_nothing_old(self, store):
        store.claim_slot("streak:abc:ntfy", TODAY)

        assert store.prune_claims(TODAY) == 0


class TestHabitQueries:
    def test_only_active_habits_with_reminders(self, store, habit_factory):
        due = habit_factory(name="Read", reminder_time="08:00")
        habit_factory(name="Walk")
        habit_factory(name="Old", reminder_time="08:00", is_archived=True)

        assert [h.id for h in store.query_active_habits_with_reminder()] == [due.id]

    def test_active_habits_for_users(self, store, habit_factory):
        mine = habit_factory(name="Read", user_id="a")
        habit_factory(name="Run", user_id="b")

        assert [h.id for h in store.query_active_habits(["a"])] == [mine.id]
        assert store.query_active_habits([]) == []

    def test_completion_lookup(self, store, habit_factory, completion_factory):
        habit = habit_factory()
        completion_factory(habit, TODAY)

        assert store.query_completion(habit.id, TODAY) is not None
        assert store.query_completion(habit.id, TODAY - timedelta(days=1)) is None

    def test_history_since(self, store, habit_factory, completion_factory):
        habit = habit_factory()
        completion_factory(habit, TODAY, TODAY - timedelta(days=3), TODAY - timedelta(days=30))

        rows = store.query_completion_history(habit.user_id, TODAY - timedelta(days=7))

        assert [row.completed_on for row in rows] == [TODAY - timedelta(days=3), TODAY]


class TestProfiles:
    def test_channel_filter_treats_unset_as_enabled(self, store, profile_factory):
        profile_factory(user_id="a", notify_email=None)
        profile_factory(user_id="b", notify_email=True)
        profile_factory(user_id="c", notify_email=False)

        emailable = store.query_profiles(channel=Channel.EMAIL)

        assert [p.user_id for p in emailable] == ["a", "b"]

    def test_profiles_by_id(self, store, profile_factory):
        profile_factory(user_id="a")
        profile_factory(user_id="b")

        assert [p.user_id for p in store.query_profiles(["b"])] == ["b"]
        assert store.query_profiles([]) == []

    def test_set_timezone_updates_existing(self, store, profile_factory):
        profile_factory(user_id="a")

        updated = store.set_profile_timezone("a", "Europe/Berlin")

        assert updated.timezone == "Europe/Berlin"
        assert store.query_profiles(["a"])[0].timezone == "Europe/Berlin"

    def test_set_timezone_creates_profile(self, store):
        created = store.set_profile_timezone("new-user", "Asia/Tokyo")
        assert created.user_id == "new-user"
        assert created.timezone == "Asia/Tokyo"

    def test_invalid_timezone_stored_as_utc(self, store, profile_factory):
        profile_factory(user_id="a", timezone="Europe/Paris")

        assert store.set_profile_timezone("a", "Not/AZone").timezone == "UTC"

    def test_owner_timezone_for_habit(self, store, profile_factory, habit_factory):
        profile_factory(user_id="a", timezone="Pacific/Kiritimati")
        owned = habit_factory(user_id="a")
        orphan = habit_factory(user_id="no-profile")

        assert store.query_owner_timezone(owned.id) == "Pacific/Kiritimati"
        assert store.query_owner_timezone(orphan.id) == "UTC"
        assert store.query_owner_timezone(9999) is None


class TestSubscriptions:
    def test_grouped_by_user(self, store, subscription_factory):
        subscription_factory("a", "https://push.example/a1")
        subscription_factory("a", "https://push.example/a2")
        subscription_factory("b", "https://push.example/b1")

        grouped = store.query_subscriptions(["a", "b"])

        assert [s.endpoint for s in grouped["a"]] == ["https://push.example/a1", "https://push.example/a2"]
        assert len(grouped["b"]) == 1
        assert store.query_subscriptions([]) == {}

    def test_delete_returns_count(self, store, subscription_factory):
        gone = subscription_factory("a", "https://push.example/gone")
        kept = subscription_factory("a", "https://push.example/kept")

        assert store.delete_subscriptions([gone.id, gone.id, 9999]) == 1
        assert [s.id for s in store.query_subscriptions(["a"])["a"]] == [kept.id]


class TestStreakLookup:
    def test_counts_only_positive_values(self, store, habit_factory, completion_factory):
        habit = habit_factory()
        completion_factory(habit, TODAY, TODAY - timedelta(days=1), TODAY - timedelta(days=2))
        completion_factory(habit, TODAY - timedelta(days=3), value=0)
        completion_factory(habit, TODAY - timedelta(days=4), TODAY - timedelta(days=5))

        assert store.get_streak(habit.id, TODAY) == StreakData(3, 3)

    def test_unknown_habit(self, store):
        assert store.get_streak(12345, TODAY) == StreakData()
