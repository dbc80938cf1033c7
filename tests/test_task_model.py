"""Tests for taskbook.tasks.model: validation, lifecycle, serialization."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fakes import days_from_now
from taskbook.errors import ValidationError
from taskbook.tasks.model import (
    Category,
    Priority,
    Task,
    TaskStatus,
    available_categories,
    display_name_for,
)


# ═══════════════════════════════════════════════════════════════════
#  Construction
# ═══════════════════════════════════════════════════════════════════


class TestTaskCreation:

    def test_defaults(self):
        task = Task("Buy milk", "", "user1")
        assert task.category == "personal"
        assert task.priority == "medium"
        assert task.status == "pending"
        assert task.assignee_id == "user1"
        assert task.tags == []
        assert task.notes == []
        assert task.completed_at is None
        assert task.estimated_hours == 0
        assert task.actual_hours == 0

    def test_title_and_description_are_stripped(self):
        task = Task("  Buy milk  ", "  two litres ", "user1")
        assert task.title == "Buy milk"
        assert task.description == "two litres"

    def test_none_description_becomes_empty(self):
        assert Task("Buy milk", None, "user1").description == ""

    def test_id_is_generated_and_unique(self):
        a = Task("A", "", "user1")
        b = Task("B", "", "user1")
        assert a.id.startswith("task_")
        assert a.id != b.id

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_empty_title_fails(self, title):
        with pytest.raises(ValidationError, match="Judul task wajib diisi"):
            Task(title, "", "user1")

    def test_missing_owner_fails(self):
        with pytest.raises(ValidationError, match="Owner ID wajib diisi"):
            Task("Buy milk", "", None)

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            Task("", "", "user1")

    def test_options_override_defaults(self):
        due = days_from_now(2)
        task = Task(
            "Report",
            "",
            "user1",
            assignee_id="user2",
            category="work",
            tags=["q4", "finance"],
            priority="urgent",
            status="in-progress",
            due_date=due,
            estimated_hours=3.5,
        )
        assert task.assignee_id == "user2"
        assert task.category is Category.WORK
        assert task.tags == ["q4", "finance"]
        assert task.priority is Priority.URGENT
        assert task.status is TaskStatus.IN_PROGRESS
        assert task.due_date == due
        assert task.estimated_hours == 3.5

    def test_invalid_category_fails(self):
        with pytest.raises(ValidationError, match="Kategori tidak valid"):
            Task("Report", "", "user1", category="hobby")

    def test_invalid_priority_and_status_fall_back(self):
        task = Task("Report", "", "user1", priority="critical", status="done")
        assert task.priority is Priority.MEDIUM
        assert task.status is TaskStatus.PENDING

    def test_duplicate_tags_collapse_on_construction(self):
        task = Task("Report", "", "user1", tags=["a", "b", "a", " ", "b"])
        assert task.tags == ["a", "b"]

    def test_negative_estimate_fails(self):
        with pytest.raises(ValidationError):
            Task("Report", "", "user1", estimated_hours=-1)

    def test_created_as_completed_has_completed_at(self):
        task = Task("Report", "", "user1", status="completed")
        assert task.completed_at == task.created_at

    def test_from_options_ignores_unknown_keys(self):
        task = Task.from_options(
            "Report", "", "user1", {"category": "study", "colour": "blue", "owner_id": "x"}
        )
        assert task.category is Category.STUDY
        assert task.owner_id == "user1"


# ═══════════════════════════════════════════════════════════════════
#  Derived values
# ═══════════════════════════════════════════════════════════════════


class TestDerivedValues:

    def test_is_completed_follows_status(self, make_task):
        task = make_task()
        assert task.is_completed is False
        task.update_status("completed")
        assert task.is_completed is True

    def test_is_overdue(self, make_task):
        task = make_task()
        assert task.is_overdue is False

        task.set_due_date(days_from_now(-1))
        assert task.is_overdue is True

        task.update_status("completed")
        assert task.is_overdue is False

    def test_future_due_date_is_not_overdue(self, make_task):
        task = make_task(due_date=days_from_now(1))
        assert task.is_overdue is False

    def test_days_until_due(self, make_task):
        task = make_task()
        assert task.days_until_due is None

        task.set_due_date(days_from_now(1))
        assert task.days_until_due == 1

    def test_days_until_due_rounds_up(self, make_task):
        task = make_task(due_date=days_from_now(1.5))
        assert task.days_until_due == 2

    def test_days_until_due_negative_when_past(self, make_task):
        task = make_task(due_date=days_from_now(-2.5))
        assert task.days_until_due == -2

    def test_is_in_category(self, make_task):
        task = make_task(category="study")
        assert task.is_in_category("study") is True
        assert task.is_in_category("work") is False


# ═══════════════════════════════════════════════════════════════════
#  Updates
# ═══════════════════════════════════════════════════════════════════


class TestTaskUpdates:

    def test_update_title(self, make_task):
        task = make_task()
        before = task.updated_at
        task.update_title("Updated Task Title")
        assert task.title == "Updated Task Title"
        assert task.updated_at >= before

    def test_update_title_empty_fails_and_keeps_title(self, make_task):
        task = make_task(title="Original")
        with pytest.raises(ValidationError, match="Judul task tidak boleh kosong"):
            task.update_title("  ")
        assert task.title == "Original"

    def test_update_category(self, make_task):
        task = make_task()
        task.update_category("work")
        assert task.category is Category.WORK

    def test_update_category_invalid_leaves_state(self, make_task):
        task = make_task(category="health")
        stamp = task.updated_at
        with pytest.raises(ValidationError, match="Kategori tidak valid"):
            task.update_category("invalid-category")
        assert task.category is Category.HEALTH
        assert task.updated_at == stamp

    def test_update_priority_falls_back(self, make_task):
        task = make_task(priority="high")
        task.update_priority("whatever")
        assert task.priority is Priority.MEDIUM

    def test_update_status_invalid_falls_back_to_pending(self, make_task):
        task = make_task(status="blocked")
        task.update_status("paused")
        assert task.status is TaskStatus.PENDING

    def test_update_description(self, make_task):
        task = make_task()
        task.update_description("  more detail ")
        assert task.description == "more detail"

    def test_set_due_date_accepts_iso_string_and_clears(self, make_task):
        task = make_task()
        task.set_due_date("2030-01-15T09:30:00Z")
        assert task.due_date == datetime(2030, 1, 15, 9, 30, tzinfo=timezone.utc)
        task.set_due_date(None)
        assert task.due_date is None

    def test_naive_due_date_is_utc(self, make_task):
        task = make_task(due_date=datetime(2030, 1, 1, 12, 0))
        assert task.due_date.tzinfo is not None
        assert task.due_date.utcoffset() == timedelta(0)

    def test_bad_date_string_fails(self, make_task):
        task = make_task()
        with pytest.raises(ValidationError, match="Tanggal tidak valid"):
            task.set_due_date("next tuesday")

    def test_assign_to_and_back_to_owner(self, make_task):
        task = make_task(owner_id="user1")
        task.assign_to("user2")
        assert task.assignee_id == "user2"
        task.assign_to("")
        assert task.assignee_id == "user1"

    def test_hours(self, make_task):
        task = make_task()
        task.set_estimated_hours(4)
        task.log_hours(1.5)
        task.log_hours(2)
        assert task.estimated_hours == 4
        assert task.actual_hours == 3.5
        with pytest.raises(ValidationError):
            task.log_hours(-1)
        assert task.actual_hours == 3.5


class TestCompletedAt:

    def test_set_on_first_completion(self, make_task):
        task = make_task()
        task.update_status("completed")
        assert task.completed_at is not None

    def test_second_completion_keeps_first_stamp(self, make_task):
        task = make_task()
        task.update_status("completed")
        first = task.completed_at
        task.update_status("completed")
        assert task.completed_at == first

    def test_retained_after_reopening(self, make_task):
        task = make_task()
        task.update_status("completed")
        first = task.completed_at
        task.update_status("pending")
        assert task.completed_at == first
        task.update_status("completed")
        assert task.completed_at == first

    def test_not_set_by_other_statuses(self, make_task):
        task = make_task()
        task.update_status("cancelled")
        task.update_status("in-progress")
        assert task.completed_at is None


class TestTagsAndNotes:

    def test_add_and_remove_tag(self, make_task):
        task = make_task()
        task.add_tag("urgent")
        assert "urgent" in task.tags
        task.remove_tag("urgent")
        assert "urgent" not in task.tags

    def test_add_tag_is_idempotent(self, make_task):
        task = make_task()
        task.add_tag("urgent")
        task.add_tag("urgent")
        assert task.tags.count("urgent") == 1

    def test_tags_are_case_sensitive(self, make_task):
        task = make_task()
        task.add_tag("Urgent")
        task.add_tag("urgent")
        assert task.tags == ["Urgent", "urgent"]

    def test_remove_absent_tag_is_noop(self, make_task):
        task = make_task(tags=["a"])
        task.remove_tag("b")
        assert task.tags == ["a"]

    def test_tags_property_is_a_copy(self, make_task):
        task = make_task(tags=["a"])
        task.tags.append("b")
        assert task.tags == ["a"]

    def test_add_note(self, make_task):
        task = make_task()
        task.add_note("  first note ")
        task.add_note("second")
        assert [n.content for n in task.notes] == ["first note", "second"]
        assert task.notes[0].id != task.notes[1].id
        assert task.notes[0].created_at.tzinfo is not None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_blank_note_ignored(self, make_task, text):
        task = make_task()
        stamp = task.updated_at
        task.add_note(text)
        assert task.notes == []
        assert task.updated_at == stamp


# ═══════════════════════════════════════════════════════════════════
#  Serialization
# ═══════════════════════════════════════════════════════════════════


class TestSerialization:

    def _rich_task(self) -> Task:
        task = Task(
            "Quarterly report",
            "numbers for Q4",
            "user1",
            assignee_id="user2",
            category="work",
            tags=["q4"],
            priority="high",
            due_date=datetime(2024, 12, 31, tzinfo=timezone.utc),
            estimated_hours=6,
        )
        task.add_tag("important")
        task.add_note("This is a test note")
        task.log_hours(2.25)
        task.update_status("completed")
        return task

    def test_record_shape(self):
        record = self._rich_task().to_dict()
        assert set(record) == {
            "id", "title", "description", "ownerId", "assigneeId", "category",
            "status", "priority", "tags", "dueDate", "createdAt", "updatedAt",
            "completedAt", "estimatedHours", "actualHours", "notes",
        }
        assert record["dueDate"].startswith("2024-12-31T00:00:00")
        assert record["category"] == "work"
        assert record["notes"][0]["content"] == "This is a test note"

    def test_round_trip_preserves_every_attribute(self):
        original = self._rich_task()
        restored = Task.from_dict(original.to_dict())

        assert restored.id == original.id
        assert restored.title == original.title
        assert restored.description == original.description
        assert restored.owner_id == original.owner_id
        assert restored.assignee_id == original.assignee_id
        assert restored.category == original.category
        assert restored.tags == original.tags
        assert restored.priority == original.priority
        assert restored.status == original.status
        assert restored.due_date == original.due_date
        assert restored.created_at == original.created_at
        assert restored.updated_at == original.updated_at
        assert restored.completed_at == original.completed_at
        assert restored.estimated_hours == original.estimated_hours
        assert restored.actual_hours == original.actual_hours
        assert restored.notes == original.notes
        assert restored.to_dict() == original.to_dict()

    def test_round_trip_without_due_date(self, make_task):
        task = make_task()
        record = task.to_dict()
        assert record["dueDate"] is None
        assert Task.from_dict(record).due_date is None

    def test_legacy_record_without_completed_at(self, make_task):
        task = make_task()
        task.update_status("completed")
        record = task.to_dict()
        del record["completedAt"]
        restored = Task.from_dict(record)
        assert restored.status is TaskStatus.COMPLETED
        assert restored.completed_at is None

    def test_legacy_note_ids_survive(self, make_task):
        record = make_task().to_dict()
        record["notes"] = [
            {"id": 1700000000000, "content": "old", "createdAt": "2023-11-14T22:13:20.000Z"}
        ]
        restored = Task.from_dict(record)
        assert restored.notes[0].id == 1700000000000
        assert restored.notes[0].created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


class TestCategories:

    def test_available_categories_order(self):
        assert available_categories() == [
            "work", "personal", "study", "health", "finance", "shopping", "other",
        ]

    def test_display_name(self, make_task):
        task = make_task(category="work")
        assert task.category_display_name == "Work & Business"

    @pytest.mark.parametrize(
        ("category", "label"),
        [
            ("personal", "Personal"),
            ("study", "Study & Learning"),
            ("health", "Health & Fitness"),
            ("finance", "Finance & Money"),
            ("shopping", "Shopping"),
            ("other", "Other"),
            (Category.WORK, "Work & Business"),
        ],
    )
    def test_display_name_for(self, category, label):
        assert display_name_for(category) == label

    def test_unmapped_category_returns_raw_value(self):
        assert display_name_for("gardening") == "gardening"
