"""Tests for DataScopeFilter filters and access checks."""
from __future__ import annotations

from tenantauth.authz.context import DataScope
from tenantauth.authz.data_scope import DataScopeFilter, ResourceRef


def test_apply_filter_per_tier(make_context):
    base = {"status": "PENDING"}

    global_ = DataScopeFilter(make_context(data_scope=DataScope.GLOBAL, organization_id=None))
    org = DataScopeFilter(make_context(data_scope=DataScope.ORGANIZATION, organization_id=10))
    user = DataScopeFilter(make_context(user_id=5, data_scope=DataScope.USER, organization_id=None))

    assert global_.apply_filter(base) == {"status": "PENDING"}
    assert org.apply_filter(base) == {"status": "PENDING", "organization_id": 10}
    assert user.apply_filter(base) == {"status": "PENDING", "user_id": 5}
    assert base == {"status": "PENDING"}


def test_apply_filter_without_organization_still_constrains(make_context):
    scope = DataScopeFilter(make_context(data_scope=DataScope.ORGANIZATION, organization_id=None))

    assert scope.apply_filter() == {"organization_id": None}


def test_helper_filters(make_context):
    org = DataScopeFilter(make_context(user_id=3, organization_id=10))
    global_ = DataScopeFilter(make_context(data_scope=DataScope.GLOBAL))

    assert org.organization_filter() == {"organization_id": 10}
    assert org.user_filter() == {"user_id": 3}
    assert org.parent_filter() == {"parent_id": 3}
    assert global_.organization_filter() == {}
    assert global_.parent_filter() == {}


def test_global_accesses_everything(make_context):
    scope = DataScopeFilter(make_context(data_scope=DataScope.GLOBAL, organization_id=None))

    assert scope.can_access_resource(ResourceRef(organization_id=99, user_id=42))
    assert scope.can_access_resource(ResourceRef())
    assert scope.can_access_organization(99)


def test_organization_scope(make_context):
    scope = DataScopeFilter(make_context(user_id=3, organization_id=10, tutor_id=7))

    assert scope.can_access_resource(ResourceRef(organization_id=10))
    assert not scope.can_access_resource(ResourceRef(organization_id=11))
    # created by this principal as tutor, in another organization
    assert scope.can_access_resource(ResourceRef(organization_id=11, created_by_tutor_id=7))
    assert not scope.can_access_resource(ResourceRef(organization_id=11, created_by_tutor_id=8))
    # own rows stay visible to the wider tier
    assert scope.can_access_resource(ResourceRef(organization_id=11, user_id=3))
    assert scope.can_access_organization(10)
    assert not scope.can_access_organization(11)


def test_organization_scope_without_organization_sees_no_unowned_rows(make_context):
    scope = DataScopeFilter(make_context(organization_id=None))

    assert not scope.can_access_resource(ResourceRef(organization_id=None))
    assert not scope.can_access_organization(10)


def test_user_scope(make_context):
    scope = DataScopeFilter(make_context(user_id=5, data_scope=DataScope.USER, organization_id=10))

    assert scope.can_access_resource(ResourceRef(user_id=5))
    assert scope.can_access_resource(ResourceRef(parent_id=5, organization_id=99))
    assert not scope.can_access_resource(ResourceRef(organization_id=10))
    assert not scope.can_access_organization(10)


def test_tiers_are_nested(make_context):
    resources = [
        ResourceRef(organization_id=10, user_id=5),
        ResourceRef(organization_id=11, parent_id=5),
        ResourceRef(organization_id=10),
        ResourceRef(organization_id=11, created_by_tutor_id=7),
        ResourceRef(organization_id=12),
    ]
    common = {"user_id": 5, "organization_id": 10, "tutor_id": 7}
    user = DataScopeFilter(make_context(data_scope=DataScope.USER, **common))
    org = DataScopeFilter(make_context(data_scope=DataScope.ORGANIZATION, **common))
    global_ = DataScopeFilter(make_context(data_scope=DataScope.GLOBAL, **common))

    for resource in resources:
        if user.can_access_resource(resource):
            assert org.can_access_resource(resource)
        if org.can_access_resource(resource):
            assert global_.can_access_resource(resource)
