from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import event, false, or_
from sqlalchemy.orm import Session, with_loader_criteria
from sqlalchemy.sql.elements import ColumnElement

from tenantauth.authz.data_scope import DataScopeFilter


@dataclass(frozen=True)
class ScopeColumns:
    """Which columns of a model carry the ownership facts used for scoping."""

    organization: str | None = "organization_id"
    owners: tuple[str, ...] = ("user_id",)
    tutor: str | None = None


def scoped_models() -> dict[type, ScopeColumns]:
    # Local import to avoid cycles.
    from tenantauth.models.booking import Booking  # noqa: WPS433 (local import)

    return {
        Booking: ScopeColumns(organization="organization_id", owners=("parent_id",), tutor="created_by_tutor_id"),
    }


def scope_clause(model: type, columns: ScopeColumns, scope: DataScopeFilter) -> ColumnElement[bool] | None:
    """
    SQL counterpart of `DataScopeFilter.can_access_resource` for one model.

    Returns None when no restriction applies (GLOBAL). Never produces an
    `IS NULL` match for a missing organization or tutor id.
    """

    if scope.is_global:
        return None

    context = scope.context
    conditions: list[ColumnElement[bool]] = [getattr(model, name) == context.user_id for name in columns.owners]

    if scope.is_organization_scoped:
        if columns.organization and context.organization_id is not None:
            conditions.append(getattr(model, columns.organization) == context.organization_id)
        if columns.tutor and context.tutor_id is not None:
            conditions.append(getattr(model, columns.tutor) == context.tutor_id)

    if not conditions:
        return false()
    return or_(*conditions)


@event.listens_for(Session, "do_orm_execute")
def _apply_data_scope(execute_state) -> None:
    """
    Transparent data scoping.

    Keeps existing query code unchanged:
        db.scalars(select(Booking)).all()
    still returns only the rows the request's principal may see.
    """

    if not execute_state.is_select:
        return

    scope = execute_state.session.info.get("data_scope")
    if scope is None or scope.is_global:
        return

    options = []
    for model, columns in scoped_models().items():
        clause = scope_clause(model, columns, scope)
        if clause is not None:
            options.append(with_loader_criteria(model, clause, include_aliases=True))

    if options:
        execute_state.statement = execute_state.statement.options(*options)
