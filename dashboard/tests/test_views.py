"""
Tests for the per-kind views and their workflows.

Covers:
  - reference ids on create (P / AFV / AT)
  - projects grouped by category
  - deviation approve / reject / add_comment, with rollback on failure
  - comments kept through later updates and reloads
  - additional task approve / reject / send_to_qa / convert_deviation
  - customer search over contact persons, role filter, pinning
"""

import re

import pytest

from datasync.kernel.errors import NetworkError, ValidationError
from datasync.kernel.filters import QUERY
from datasync.kernel.types import is_placeholder

# ============================================================================
# 1. Projects
# ============================================================================


class TestProjectsView:
    @pytest.mark.asyncio
    async def test_default_order(self, ctx):
        assert [p.name for p in ctx.projects.items] == ["Boligbyggeri Nord", "Åkanden", "Skole Syd"]

    @pytest.mark.asyncio
    async def test_create_assigns_reference(self, ctx):
        project = await ctx.projects.create_entity({"name": "Hal Vest", "project_id": "ignored"})
        assert re.fullmatch(r"P-\d{8}-[0-9A-F]{4}", project.project_id)

    @pytest.mark.asyncio
    async def test_by_category(self, ctx):
        groups = ctx.projects.by_category()
        assert sorted(groups) == ["bolig", "offentlig"]
        assert [p.id for p in groups["bolig"]] == ["p2", "p3"]

    @pytest.mark.asyncio
    async def test_filters(self, ctx):
        ctx.projects.set_filter_parameter("type", "NYBYGGERI")
        assert [p.id for p in ctx.projects.items] == ["p2", "p3"]
        ctx.projects.set_filter_parameter(QUERY, "0003")
        assert [p.id for p in ctx.projects.items] == ["p3"]

    @pytest.mark.asyncio
    async def test_pin(self, ctx, repos):
        assert await ctx.projects.toggle_pinned("p1") is True
        assert {p.id for p in ctx.projects.items[:2]} == {"p1", "p2"}
        assert repos["projects"].get("p1").pinned is True


# ============================================================================
# 2. Deviations
# ============================================================================


class TestDeviationsView:
    @pytest.mark.asyncio
    async def test_create_assigns_reference(self, ctx):
        deviation = await ctx.deviations.create_entity({"title": "Revne i fundament", "project_id": "P-1"})
        assert deviation.deviation_id.startswith("AFV-")
        assert deviation.status == "Afventer"

    @pytest.mark.asyncio
    async def test_approve(self, ctx, sink):
        assert await ctx.deviations.approve("d1") is True
        assert ctx.deviations.get("d1").status == "Godkendt"
        assert sink.notifications[-1].title == "Deviation approved"

    @pytest.mark.asyncio
    async def test_reject_failure_rolls_back(self, ctx, repos, sink):
        repos["deviations"].fail_next("update", NetworkError("offline"))
        assert await ctx.deviations.reject("d1") is False
        assert ctx.deviations.get("d1").status == "Afventer"
        assert [n.kind for n in sink.notifications] == ["error"]

    @pytest.mark.asyncio
    async def test_add_comment(self, ctx, repos, sink):
        assert await ctx.deviations.add_comment("d1", "Jens", "Vinduet flyttes mandag") is True
        comments = ctx.deviations.get("d1").comments
        assert len(comments) == 1
        assert not is_placeholder(comments[0].id)
        assert comments[0].deviation_id == "d1"
        assert len(repos["deviation_comments"].rows) == 1
        assert sink.notifications[-1].title == "Comment added"

    @pytest.mark.asyncio
    async def test_comment_survives_approve_and_refresh(self, ctx):
        assert await ctx.deviations.add_comment("d1", "Jens", "Vinduet flyttes mandag") is True
        assert await ctx.deviations.approve("d1") is True
        assert [c.text for c in ctx.deviations.get("d1").comments] == ["Vinduet flyttes mandag"]
        await ctx.deviations.refresh()
        assert [c.text for c in ctx.deviations.get("d1").comments] == ["Vinduet flyttes mandag"]

    @pytest.mark.asyncio
    async def test_add_comment_failure(self, ctx, repos, sink):
        repos["deviation_comments"].fail_next("create", NetworkError("offline"))
        assert await ctx.deviations.add_comment("d1", "Jens", "Hej") is False
        assert ctx.deviations.get("d1").comments == ()
        assert sink.notifications[-1].title == "Could not add comment"

    @pytest.mark.asyncio
    async def test_add_empty_comment(self, ctx, repos):
        assert await ctx.deviations.add_comment("d1", "Jens", "") is False
        assert repos["deviation_comments"].calls == []

    @pytest.mark.asyncio
    async def test_approver_filter(self, ctx):
        ctx.deviations.set_filter_parameter("approver", "ingeniør")
        assert len(ctx.deviations.items) == 2
        ctx.deviations.set_filter_parameter("status", "godkendt")
        assert [d.id for d in ctx.deviations.items] == ["d2"]


# ============================================================================
# 3. Additional tasks
# ============================================================================


class TestAdditionalTasksView:
    @pytest.mark.asyncio
    async def test_workflow(self, ctx):
        task = await ctx.additional_tasks.create_entity({"title": "Ekstra stikkontakter", "price": 4500})
        assert task.task_id.startswith("AT-")
        assert await ctx.additional_tasks.approve(task.id) is True
        assert await ctx.additional_tasks.send_to_qa(task.id) is True
        assert ctx.additional_tasks.get(task.id).status == "Færdig"

    @pytest.mark.asyncio
    async def test_reject(self, ctx):
        task = await ctx.additional_tasks.create_entity({"title": "Ekstra stikkontakter"})
        assert await ctx.additional_tasks.reject(task.id) is True
        assert ctx.additional_tasks.get(task.id).status == "Afvist"

    @pytest.mark.asyncio
    async def test_convert_deviation(self, ctx, sink):
        task = await ctx.convert_deviation_to_task("d1")
        assert task.title == "Forkert vinduesplacering (fra afvigelse)"
        assert task.status == "Afventer"
        assert task.price == 0
        assert task.time_required == "0 timer"
        assert task.materials == ""
        assert task.drawing == "A-101"
        assert task.assigned_to == "Jens"
        assert task.from_deviation_id == "d1"
        assert ctx.additional_tasks.get(task.id) == task
        assert sink.notifications[-1].title == "Deviation converted to additional task"

    @pytest.mark.asyncio
    async def test_convert_failure_leaves_both_untouched(self, ctx, repos, sink):
        deviation = ctx.deviations.get("d1")
        repos["additional_tasks"].fail_next("create", ValidationError("price must be set"))
        assert await ctx.additional_tasks.convert_deviation(deviation) is None
        assert ctx.deviations.get("d1") == deviation
        assert len(ctx.additional_tasks.cache.snapshot()) == 0
        assert repos["additional_tasks"].rows == {}
        assert [n.kind for n in sink.notifications] == ["error"]

    @pytest.mark.asyncio
    async def test_convert_unknown_deviation(self, ctx):
        assert await ctx.convert_deviation_to_task("missing") is None


# ============================================================================
# 4. Customers
# ============================================================================


class TestCustomersView:
    @pytest.mark.asyncio
    async def test_pinned_first(self, ctx):
        assert [c.id for c in ctx.customers.items] == ["c2", "c1"]

    @pytest.mark.asyncio
    async def test_search_contact_email(self, ctx):
        ctx.customers.set_filter_parameter(QUERY, "hansenbyg.dk")
        assert [c.id for c in ctx.customers.items] == ["c1"]

    @pytest.mark.asyncio
    async def test_search_cvr(self, ctx):
        ctx.customers.set_filter_parameter(QUERY, "5513")
        assert [c.id for c in ctx.customers.items] == ["c2"]

    @pytest.mark.asyncio
    async def test_role_filter(self, ctx):
        ctx.customers.set_filter_parameter("role", "bygherre")
        assert [c.id for c in ctx.customers.items] == ["c2"]

    @pytest.mark.asyncio
    async def test_unpin(self, ctx, sink):
        assert await ctx.customers.toggle_pinned("c2") is True
        assert ctx.customers.get("c2").pinned is False
        assert [c.id for c in ctx.customers.items] == ["c2", "c1"]
        assert sink.notifications[-1].title == "Customer unpinned"
