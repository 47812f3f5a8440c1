"""Tests for daily plans, day scores and weekly history (F4)."""

from datetime import date

import pytest


class TestDailyTasks:
    """Tests for the daily plan."""

    def test_add_defaults_to_today(self, session):
        task = session.add_daily_task("Maths", "Exercise 1.1")

        assert task.date == date.today().isoformat()
        assert task.status == "pending"
        assert [t.id for t in session.todays_plan()] == [task.id]

    def test_tasks_for_date(self, session):
        session.add_daily_task("Maths", "a", day="2026-01-05")
        session.add_daily_task("Science", "b", day="2026-01-06")

        tasks = session.tasks_for_date("2026-01-05")
        assert [t.task for t in tasks] == ["a"]

    def test_remove(self, session):
        task = session.add_daily_task("Maths", "a", day="2026-01-05")

        assert session.remove_daily_task(task.id) is True
        assert session.tasks_for_date("2026-01-05") == []

    def test_actual_work_defaults_to_task(self, session):
        task = session.add_daily_task("Maths", "Exercise 1.1", day="2026-01-05")

        session.update_daily_task(task.id, "done")

        assert session.tasks_for_date("2026-01-05")[0].actual_work == "Exercise 1.1"

    def test_unknown_task(self, session):
        assert session.update_daily_task(999, "done") is False

    def test_invalid_status(self, session):
        task = session.add_daily_task("Maths", "a", day="2026-01-05")
        with pytest.raises(ValueError):
            session.update_daily_task(task.id, "finished")


class TestDayScore:
    """Tests for the day completion score."""

    def test_score_counts_partial_as_half(self, session):
        day = "2026-01-05"
        done = session.add_daily_task("Maths", "a", day=day)
        partial = session.add_daily_task("Science", "b", day=day)
        session.add_daily_task("English", "c", day=day)

        session.update_daily_task(done.id, "done")
        session.update_daily_task(partial.id, "partial", "half of it")

        entry = session.get_history_entry(day)
        assert entry.score == 50
        assert len(entry.tasks) == 3

    def test_score_rounds_half_up(self, session):
        day = "2026-01-05"
        tasks = [session.add_daily_task("Maths", str(i), day=day) for i in range(4)]

        session.update_daily_task(tasks[0].id, "partial")

        # 0.5 / 4 = 12.5%
        assert session.get_history_entry(day).score == 13

    def test_history_upserted(self, session):
        day = "2026-01-05"
        task = session.add_daily_task("Maths", "a", day=day)

        session.update_daily_task(task.id, "partial")
        session.update_daily_task(task.id, "done")

        assert session.get_history_entry(day).score == 100


class TestWeek:
    """Tests for week_history() and weekly_stats()."""

    def test_week_history_oldest_first(self, session):
        task = session.add_daily_task("Maths", "a", day="2026-01-07")
        session.update_daily_task(task.id, "done")

        week = session.week_history(date(2026, 1, 7))

        assert len(week) == 7
        assert week[0]["date"] == "2026-01-01"
        assert week[-1]["date"] == "2026-01-07"
        assert week[-1]["day"] == "Wed"
        assert week[-1]["score"] == 100
        assert week[0]["score"] is None

    def test_weekly_stats(self, session):
        first = session.add_daily_task("Maths", "a", day="2026-01-06")
        second = session.add_daily_task("Maths", "b", day="2026-01-07")
        third = session.add_daily_task("Science", "c", day="2026-01-07")
        session.update_daily_task(first.id, "done")
        session.update_daily_task(second.id, "notDone")
        session.update_daily_task(third.id, "done")

        stats = session.weekly_stats(date(2026, 1, 7))

        assert stats.days_worked == 2
        assert stats.average == 75
        assert stats.subject_frequency == {"Maths": 2, "Science": 1}

    def test_weekly_stats_empty(self, session):
        stats = session.weekly_stats(date(2026, 1, 7))
        assert (stats.average, stats.days_worked, stats.subject_frequency) == (0, 0, {})
