# Copyright (c) 2026 TenantScope Contributors. All Rights Reserved.
"""Unit tests for the four scope policies, driven with plain dict rows."""

import uuid

import pytest

from tenant_scope.core.errors import DataScopeViolation
from tenant_scope.core.metrics import scope_metrics
from tenant_scope.core.tenant import Tenant, TenantContext
from tenant_scope.policies.base import ReadQuery, ScopeDescriptor, ScopeKind
from tenant_scope.policies.exclusive import ExclusiveScope
from tenant_scope.policies.global_scope import GlobalScope
from tenant_scope.policies.mixed import MixedScope
from tenant_scope.policies.registry import build_policy
from tenant_scope.policies.shared import SharedScope


ROWS = [
    {"id": 10, "account_id": 0, "title": "baseline"},
    {"id": 11, "account_id": 1, "title": "acme"},
    {"id": 12, "account_id": 2, "title": "globex"},
    {"id": 13, "account_id": "1", "title": "string owner"},
]


def visible(policy, ctx, rows=ROWS):
    query = ReadQuery(table="items")
    policy.before_read(ctx, query)
    return [row["id"] for row in query.apply(rows)]


class TestGlobalScope:
    def test_primary_context_unrestricted(self, primary):
        policy = GlobalScope()
        assert visible(policy, primary) == [10, 11, 12, 13]
        policy.before_write(primary, {"id": 1}, True, "settings")
        policy.before_delete(primary, {"id": 1}, "settings")

    def test_tenant_cannot_read(self, acme):
        with pytest.raises(DataScopeViolation, match="cannot query global records"):
            visible(GlobalScope(), acme)

    def test_tenant_cannot_write(self, acme):
        with pytest.raises(DataScopeViolation, match="cannot save global records"):
            GlobalScope().before_write(acme, {"id": 5}, False, "settings")

    def test_tenant_cannot_delete(self, acme):
        with pytest.raises(DataScopeViolation, match="cannot delete global records") as exc:
            GlobalScope().before_delete(acme, {"id": 5}, "settings")
        assert exc.value.tenant_id == 1
        assert exc.value.table == "settings"
        assert exc.value.record_id == 5

    def test_violation_counted(self, acme):
        with pytest.raises(DataScopeViolation):
            GlobalScope().before_delete(acme, {"id": 5}, "settings")
        assert scope_metrics.get_counter("scope_violation:settings") == 1


class TestExclusiveScope:
    def test_reads_unfiltered(self, acme):
        assert visible(ExclusiveScope(), acme) == [10, 11, 12, 13]

    def test_stamps_empty_owner(self, acme):
        row = {"account_id": None, "title": "x"}
        ExclusiveScope().before_write(acme, row, True, "logs")
        assert row["account_id"] == 1

    def test_keeps_explicit_owner(self, acme):
        row = {"account_id": 7}
        ExclusiveScope().before_write(acme, row, True, "logs")
        assert row["account_id"] == 7

    def test_entity_without_field_untouched(self, acme):
        row = {"title": "x"}
        ExclusiveScope().before_write(acme, row, True, "logs")
        assert "account_id" not in row

    def test_updates_and_deletes_allowed(self, acme):
        row = {"id": 1, "account_id": 2}
        ExclusiveScope().before_write(acme, row, False, "logs")
        ExclusiveScope().before_delete(acme, row, "logs")
        assert row["account_id"] == 2

    def test_primary_context_no_stamp(self, primary):
        row = {"account_id": None}
        ExclusiveScope().before_write(primary, row, True, "logs")
        assert row["account_id"] is None


class TestSharedScope:
    def test_tenant_reads_own_rows(self, acme, globex):
        policy = SharedScope()
        assert visible(policy, acme) == [11]
        assert visible(policy, globex) == [12]

    def test_primary_reads_everything(self, primary):
        assert visible(SharedScope(), primary) == [10, 11, 12, 13]

    def test_insert_overwrites_owner(self, acme):
        row = {"account_id": 2, "title": "sneaky"}
        SharedScope().before_write(acme, row, True, "notes")
        assert row["account_id"] == 1

    def test_saved_row_readable_by_owner_only(self, acme, globex):
        policy = SharedScope()
        row = {"id": 20, "title": "new"}
        policy.before_write(acme, row, True, "notes")
        assert visible(policy, acme, [row]) == [20]
        assert visible(policy, globex, [row]) == []

    def test_update_foreign_row_rejected(self, acme):
        with pytest.raises(DataScopeViolation) as exc:
            SharedScope().before_write(acme, {"id": 12, "account_id": 2}, False, "notes")
        assert exc.value.owner == 2
        assert exc.value.field == "account_id"

    def test_update_own_row_allowed(self, acme):
        SharedScope().before_write(acme, {"id": 11, "account_id": 1}, False, "notes")

    def test_delete_foreign_row_rejected(self, globex):
        with pytest.raises(DataScopeViolation):
            SharedScope().before_delete(globex, {"id": 11, "account_id": 1}, "notes")

    def test_owner_compared_strictly(self, acme):
        with pytest.raises(DataScopeViolation):
            SharedScope().before_write(acme, {"id": 13, "account_id": "1"}, False, "notes")

    def test_reassigning_own_row_rejected(self, acme):
        row = {"id": 11, "account_id": 1}
        row["account_id"] = 2
        with pytest.raises(DataScopeViolation):
            SharedScope().before_write(acme, row, False, "notes", persisted_owner=1)

    def test_claiming_foreign_row_rejected(self, acme):
        row = {"id": 12, "account_id": 1}
        with pytest.raises(DataScopeViolation) as exc:
            SharedScope().before_write(acme, row, False, "notes", persisted_owner=2)
        assert exc.value.owner == 2

    def test_string_tenant_ids(self):
        ctx = TenantContext.for_tenant(Tenant(id="t-1"))
        rows = [{"id": 1, "account_id": "t-1"}, {"id": 2, "account_id": "t-2"}]
        assert visible(SharedScope(), ctx, rows) == [1]

    def test_uuid_tenant_ids(self):
        key = uuid.UUID(int=7)
        ctx = TenantContext.for_tenant(Tenant(id=key))
        rows = [{"id": 1, "account_id": key}, {"id": 2, "account_id": str(key)}]
        assert visible(SharedScope(), ctx, rows) == [1]

    def test_custom_field(self, acme):
        policy = SharedScope(foreign_key_field="org_id")
        rows = [{"id": 1, "org_id": 1}, {"id": 2, "org_id": 2}]
        assert visible(policy, acme, rows) == [1]


class TestMixedScope:
    def test_tenant_reads_own_and_global(self, acme, globex):
        policy = MixedScope()
        assert visible(policy, acme) == [10, 11]
        assert visible(policy, globex) == [10, 12]

    def test_criterion_lists_global_then_tenant(self, acme):
        query = ReadQuery(table="catalog")
        MixedScope().before_read(acme, query)
        assert query.criteria[0].field == "account_id"
        assert query.criteria[0].values == (0, 1)

    def test_insert_overwrites_owner(self, acme):
        row = {"account_id": 0}
        MixedScope().before_write(acme, row, True, "catalog")
        assert row["account_id"] == 1

    def test_update_global_row_rejected(self, acme):
        with pytest.raises(DataScopeViolation, match="cannot update global records"):
            MixedScope().before_write(acme, {"id": 10, "account_id": 0}, False, "catalog")

    def test_delete_global_row_rejected(self, acme):
        with pytest.raises(DataScopeViolation, match="cannot delete global records"):
            MixedScope().before_delete(acme, {"id": 10, "account_id": 0}, "catalog")

    def test_foreign_row_rejected(self, acme):
        with pytest.raises(DataScopeViolation, match="does not own"):
            MixedScope().before_write(acme, {"id": 12, "account_id": 2}, False, "catalog")

    def test_own_row_allowed(self, acme):
        MixedScope().before_write(acme, {"id": 11, "account_id": 1}, False, "catalog")
        MixedScope().before_delete(acme, {"id": 11, "account_id": 1}, "catalog")

    def test_tenant_owning_global_value_may_edit_global_rows(self):
        ctx = TenantContext.for_tenant(Tenant(id=0))
        MixedScope().before_write(ctx, {"id": 10, "account_id": 0}, False, "catalog")

    def test_global_value_compared_strictly(self, acme):
        policy = MixedScope(global_value="0")
        assert visible(policy, acme) == [11]

    def test_primary_context_unrestricted(self, primary):
        policy = MixedScope()
        assert visible(policy, primary) == [10, 11, 12, 13]
        policy.before_delete(primary, {"id": 10, "account_id": 0}, "catalog")


class TestReadQuery:
    def test_duplicate_values_collapsed(self):
        query = ReadQuery(table="t")
        query.restrict_to("account_id", [1, 1])
        assert query.criteria[0].values == (1,)

    def test_values_of_different_type_kept(self):
        query = ReadQuery(table="t")
        query.restrict_to("account_id", [0, False])
        assert query.criteria[0].values == (0, False)

    def test_unrestricted_by_default(self):
        assert not ReadQuery(table="t").is_restricted


class TestBuildPolicy:
    @pytest.mark.parametrize(
        "kind,cls",
        [
            (ScopeKind.GLOBAL, GlobalScope),
            (ScopeKind.EXCLUSIVE, ExclusiveScope),
            (ScopeKind.SHARED, SharedScope),
            (ScopeKind.MIXED, MixedScope),
        ],
    )
    def test_kind_selects_policy(self, kind, cls):
        assert isinstance(build_policy(ScopeDescriptor(kind)), cls)

    def test_descriptor_values_passed_through(self):
        policy = build_policy(ScopeDescriptor(ScopeKind.MIXED, "org_id", "root"))
        assert policy.foreign_key_field == "org_id"
        assert policy.global_value == "root"

    @pytest.mark.parametrize("kind", [ScopeKind.GLOBAL, ScopeKind.EXCLUSIVE, ScopeKind.SHARED])
    def test_global_value_only_on_mixed(self, kind):
        policy = build_policy(ScopeDescriptor(kind, "org_id", "root"))
        assert not hasattr(policy, "global_value")

    def test_field_passed_to_exclusive_and_shared(self):
        for kind in (ScopeKind.EXCLUSIVE, ScopeKind.SHARED):
            assert build_policy(ScopeDescriptor(kind, "org_id")).foreign_key_field == "org_id"
        assert not hasattr(build_policy(ScopeDescriptor(ScopeKind.GLOBAL)), "foreign_key_field")

    def test_from_settings_with_override(self, test_settings):
        descriptor = ScopeDescriptor.from_settings("shared", test_settings, foreign_key_field="org_id")
        assert descriptor.kind is ScopeKind.SHARED
        assert descriptor.foreign_key_field == "org_id"
        assert descriptor.global_value == 0
