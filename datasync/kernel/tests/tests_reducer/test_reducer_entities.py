"""
Datasync Reducer -- Entity Mutation Tests

Covers:
  - insert adds a record, rejects duplicates and missing records
  - patch merges and re-validates, rejects unknown/immutable/invalid fields
  - remove drops a record, rejects unknown ids
  - replace swaps a placeholder for the confirmed record in place
  - restore never rejects; None means absent
  - the input snapshot is never mutated
"""

from datasync.kernel.mutations import (
    make_insert,
    make_patch,
    make_remove,
    make_replace,
    make_restore,
)
from datasync.kernel.reducer import build_snapshot, empty_snapshot, reduce, reduce_all
from datasync.kernel.tests.helpers import Item, make_items
from datasync.kernel.types import Mutation

# ============================================================================
# Helpers
# ============================================================================


def base():
    return build_snapshot(make_items(("1", "Beta", False), ("2", "Alpha", True)))


# ============================================================================
# 1. insert
# ============================================================================


class TestInsert:
    def test_insert_adds_record(self):
        result = reduce(empty_snapshot(), make_insert(Item(id="1", name="Beta")))
        assert result.accepted
        assert list(result.snapshot) == ["1"]

    def test_duplicate_insert_rejected(self):
        snap = base()
        result = reduce(snap, make_insert(Item(id="1", name="Other")))
        assert not result.accepted
        assert "ENTITY_EXISTS" in result.reason
        assert result.snapshot is snap

    def test_insert_without_record_rejected(self):
        result = reduce(base(), Mutation(type="entity.insert", id="3"))
        assert not result.accepted
        assert "MISSING_RECORD" in result.reason


# ============================================================================
# 2. patch
# ============================================================================


class TestPatch:
    def test_patch_merges_fields(self):
        result = reduce(base(), make_patch("1", {"status": "closed"}))
        assert result.accepted
        record = result.snapshot["1"]
        assert record.status == "closed"
        assert record.name == "Beta"

    def test_patch_unknown_id_rejected(self):
        result = reduce(base(), make_patch("9", {"status": "closed"}))
        assert not result.accepted
        assert "ENTITY_NOT_FOUND" in result.reason

    def test_patch_unknown_field_rejected(self):
        result = reduce(base(), make_patch("1", {"colour": "red"}))
        assert not result.accepted
        assert "UNKNOWN_FIELD" in result.reason

    def test_patch_id_rejected(self):
        result = reduce(base(), make_patch("1", {"id": "5"}))
        assert not result.accepted
        assert "IMMUTABLE_FIELD" in result.reason

    def test_patch_invalid_value_rejected(self):
        result = reduce(base(), make_patch("1", {"name": ""}))
        assert not result.accepted
        assert "INVALID_PATCH" in result.reason

    def test_same_patch_twice_equals_once(self):
        once = reduce(base(), make_patch("1", {"status": "closed"})).snapshot
        twice = reduce(once, make_patch("1", {"status": "closed"})).snapshot
        assert dict(twice) == dict(once)


# ============================================================================
# 3. remove
# ============================================================================


class TestRemove:
    def test_remove_drops_record(self):
        result = reduce(base(), make_remove("1"))
        assert result.accepted
        assert "1" not in result.snapshot

    def test_remove_unknown_rejected(self):
        result = reduce(base(), make_remove("9"))
        assert not result.accepted
        assert "ENTITY_NOT_FOUND" in result.reason


# ============================================================================
# 4. replace
# ============================================================================


class TestReplace:
    def test_replace_placeholder_keeps_position(self):
        snap = build_snapshot([Item(id="1", name="A"), Item(id="tmp_x", name="B"), Item(id="3", name="C")])
        result = reduce(snap, make_replace("tmp_x", Item(id="srv", name="B")))
        assert result.accepted
        assert list(result.snapshot) == ["1", "srv", "3"]

    def test_replace_when_confirmed_id_already_present(self):
        snap = build_snapshot([Item(id="tmp_x", name="B"), Item(id="srv", name="B")])
        result = reduce(snap, make_replace("tmp_x", Item(id="srv", name="B2")))
        assert result.accepted
        assert list(result.snapshot) == ["srv"]
        assert result.snapshot["srv"].name == "B2"

    def test_replace_missing_rejected(self):
        result = reduce(base(), make_replace("9", Item(id="9", name="X")))
        assert not result.accepted


# ============================================================================
# 5. restore
# ============================================================================


class TestRestore:
    def test_restore_record(self):
        original = Item(id="1", name="Beta")
        patched = reduce(base(), make_patch("1", {"name": "Gamma"})).snapshot
        result = reduce(patched, make_restore("1", original))
        assert result.accepted
        assert result.snapshot["1"] == original

    def test_restore_none_removes(self):
        result = reduce(base(), make_restore("1", None))
        assert result.accepted
        assert "1" not in result.snapshot

    def test_restore_none_on_missing_is_noop(self):
        result = reduce(base(), make_restore("9", None))
        assert result.accepted
        assert dict(result.snapshot) == dict(base())


# ============================================================================
# 6. Purity
# ============================================================================


class TestPurity:
    def test_input_snapshot_untouched(self):
        snap = base()
        before = dict(snap)
        reduce(snap, make_patch("1", {"status": "closed"}))
        reduce(snap, make_remove("2"))
        assert snap == before

    def test_unknown_mutation_type(self):
        result = reduce(base(), Mutation(type="entity.explode", id="1"))
        assert not result.accepted
        assert "UNKNOWN_MUTATION" in result.reason

    def test_reduce_all_skips_rejections(self):
        final = reduce_all(
            base(),
            [make_remove("9"), make_patch("1", {"status": "closed"}), make_remove("2")],
        )
        assert list(final) == ["1"]
        assert final["1"].status == "closed"

    def test_build_snapshot_last_duplicate_wins(self):
        snap = build_snapshot([Item(id="1", name="A"), Item(id="1", name="B")])
        assert snap["1"].name == "B"
