"""Tests for UserContext serialization and scope precedence."""
from __future__ import annotations

import json

import pytest

from tenantauth.authz.context import DataScope, UserContext


def test_highest_scope_wins():
    assert DataScope.highest([DataScope.USER, DataScope.ORGANIZATION]) is DataScope.ORGANIZATION
    assert DataScope.highest([DataScope.USER, DataScope.GLOBAL, DataScope.ORGANIZATION]) is DataScope.GLOBAL
    assert DataScope.highest(["USER"]) is DataScope.USER


def test_highest_scope_refuses_empty_input():
    with pytest.raises(ValueError):
        DataScope.highest([])


def test_context_survives_json(make_context):
    ctx = make_context(
        permissions={"booking.read", "product.*"},
        menu_codes={"menu.bookings"},
        role_names=("partner_admin", "tutor"),
        tutor_id=7,
    )

    restored = UserContext.from_dict(json.loads(json.dumps(ctx.to_dict())))

    assert restored == ctx
    assert ctx.to_dict()["permissions"] == ["booking.read", "product.*"]


def test_context_is_immutable(make_context):
    ctx = make_context()

    with pytest.raises(AttributeError):
        ctx.data_scope = DataScope.GLOBAL


@pytest.mark.parametrize(
    "patch",
    [
        {"user_id": "1"},
        {"user_id": True},
        {"organization_id": "acme"},
        {"permissions": "booking.read"},
        {"role_names": []},
        {"data_scope": "EVERYTHING"},
    ],
)
def test_from_dict_rejects_malformed_payloads(make_context, patch):
    raw = make_context().to_dict()
    raw.update(patch)

    with pytest.raises(ValueError):
        UserContext.from_dict(raw)


def test_from_dict_rejects_missing_keys(make_context):
    raw = make_context().to_dict()
    del raw["menu_codes"]

    with pytest.raises(ValueError):
        UserContext.from_dict(raw)
