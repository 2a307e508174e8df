import pytest

from pixelvault.exceptions import CategoryInUse, NotFound, ValidationError


def test_create_rejects_case_insensitive_duplicate(tracker):
    with pytest.raises(ValidationError):
        tracker.create("  holidays ")


def test_create_validates_name(tracker):
    with pytest.raises(ValidationError):
        tracker.create("")
    with pytest.raises(ValidationError):
        tracker.create("bad/name")
    with pytest.raises(ValidationError):
        tracker.create("x" * 101)
    created = tracker.create(" Street Art_2 ", "walls")
    assert created.name == "Street Art_2"
    assert created.image_count == 0


def test_counts_and_can_delete(tracker, category_repo):
    cid = "cat-1"
    assert tracker.can_delete(cid) is True
    tracker.increment(cid)
    tracker.increment(cid)
    assert tracker.can_delete(cid) is False
    tracker.decrement(cid)
    assert category_repo.categories[cid].image_count == 1
    tracker.decrement(cid)
    assert tracker.can_delete(cid) is True


def test_decrement_clamps_and_audits(tracker, audit, category_repo):
    assert tracker.decrement("cat-1") == 0
    assert category_repo.categories["cat-1"].image_count == 0
    assert audit.actions() == ["image_count_clamped"]


def test_delete_refuses_non_empty_category(tracker, category_repo):
    tracker.increment("cat-1")
    with pytest.raises(CategoryInUse) as exc:
        tracker.delete("cat-1")
    assert exc.value.image_count == 1
    assert "cat-1" in category_repo.categories


def test_delete_reports_race_with_new_image(tracker, category_repo):
    original = category_repo.delete_if_empty

    def gains_image(category_id):
        category_repo.categories[category_id].image_count = 1
        return original(category_id)

    category_repo.delete_if_empty = gains_image
    with pytest.raises(CategoryInUse):
        tracker.delete("cat-1")


def test_delete_empty_and_missing(tracker, category_repo):
    tracker.delete("cat-1")
    assert category_repo.categories == {}
    with pytest.raises(NotFound):
        tracker.delete("cat-1")
    with pytest.raises(NotFound):
        tracker.can_delete("cat-1")


def test_rename_keeps_own_name_and_rejects_others(tracker):
    other = tracker.create("Pets")
    renamed = tracker.rename("cat-1", "HOLIDAYS", "trips")
    assert renamed.name == "HOLIDAYS"
    assert renamed.description == "trips"
    with pytest.raises(ValidationError):
        tracker.rename(other.id, "holidays")
    with pytest.raises(NotFound):
        tracker.rename("cat-99", "Nowhere")
