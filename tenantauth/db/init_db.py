from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenantauth.authz.context import DataScope
from tenantauth.authz.store import MenuType, UserStatus
from tenantauth.db.base import Base
from tenantauth.db.session import SessionLocal, engine
from tenantauth.models.booking import Booking
from tenantauth.models.security import Menu, Organization, Permission, Role, Tutor, User, UserRole


PERMISSIONS: list[tuple[str, str]] = [
    ("*.*", "All Permissions"),
    ("product.create", "Create Product"),
    ("product.read", "View Products"),
    ("product.update", "Update Product"),
    ("product.delete", "Delete Product"),
    ("product.export", "Export Products"),
    ("booking.create", "Create Booking"),
    ("booking.read", "View Bookings"),
    ("booking.update", "Update Booking"),
    ("booking.delete", "Delete Booking"),
    ("booking.approve", "Approve Booking"),
    ("booking.cancel", "Cancel Booking"),
    ("report.view", "View Reports"),
    ("report.export", "Export Reports"),
    ("member.manage", "Manage Members"),
    ("member.invite", "Invite Members"),
    ("organization.manage", "Manage Organizations"),
    ("organization.view", "View Organizations"),
    ("role.read", "View Roles"),
    ("role.assign", "Assign Roles"),
    ("menu.read", "View Menus"),
]

# name -> (display name, scope, permission codes)
ROLES: dict[str, tuple[str, DataScope, list[str]]] = {
    "platform_admin": ("Platform Administrator", DataScope.GLOBAL, ["*.*"]),
    "platform_staff": (
        "Platform Staff",
        DataScope.GLOBAL,
        ["product.read", "booking.read", "report.view", "organization.view", "menu.read"],
    ),
    "partner_admin": (
        "Partner Administrator",
        DataScope.ORGANIZATION,
        [
            "product.*",
            "booking.read",
            "booking.update",
            "booking.approve",
            "booking.cancel",
            "report.view",
            "report.export",
            "member.manage",
            "member.invite",
            "role.read",
            "role.assign",
            "menu.read",
        ],
    ),
    "partner_staff": (
        "Partner Staff",
        DataScope.ORGANIZATION,
        ["product.read", "booking.read", "booking.update", "report.view"],
    ),
    "tutor": ("Tutor", DataScope.ORGANIZATION, ["product.read", "booking.read", "booking.update"]),
    "parent": ("Parent", DataScope.USER, ["product.read", "booking.create", "booking.read", "booking.cancel"]),
}

# (code, type, name, parent code, permission code, sort order, path)
MENUS: list[tuple[str, MenuType, str, str | None, str | None, int, str | None]] = [
    ("menu.dashboard", MenuType.MENU, "Dashboard", None, None, 1, "/dashboard"),
    ("menu.products", MenuType.MENU, "Products", None, "product.read", 2, "/products"),
    ("btn.product.create", MenuType.BUTTON, "Create Product", "menu.products", "product.create", 1, None),
    ("btn.product.export", MenuType.BUTTON, "Export Products", "menu.products", "product.export", 2, None),
    ("menu.bookings", MenuType.MENU, "Bookings", None, "booking.read", 3, "/bookings"),
    ("tab.bookings.pending", MenuType.TAB, "Pending", "menu.bookings", "booking.read", 1, "/bookings?status=pending"),
    ("btn.booking.approve", MenuType.BUTTON, "Approve", "menu.bookings", "booking.approve", 2, None),
    ("menu.reports", MenuType.MENU, "Reports", None, "report.view", 4, "/reports"),
    ("menu.members", MenuType.MENU, "Members", None, "member.manage", 5, "/members"),
    ("menu.system", MenuType.MENU, "System", None, None, 9, "/system"),
    ("menu.system.roles", MenuType.MENU, "Roles", "menu.system", "role.read", 1, "/system/roles"),
    ("menu.system.menus", MenuType.MENU, "Menus", "menu.system", "menu.read", 2, "/system/menus"),
]

ROLE_MENUS: dict[str, list[str]] = {
    "platform_admin": [m[0] for m in MENUS],
    "platform_staff": ["menu.dashboard", "menu.products", "menu.bookings", "tab.bookings.pending", "menu.reports"],
    "partner_admin": [
        "menu.dashboard",
        "menu.products",
        "btn.product.create",
        "btn.product.export",
        "menu.bookings",
        "tab.bookings.pending",
        "btn.booking.approve",
        "menu.reports",
        "menu.members",
        # Without menu.system: the roles page is promoted to a top-level entry.
        "menu.system.roles",
    ],
    "partner_staff": ["menu.dashboard", "menu.products", "menu.bookings", "tab.bookings.pending", "menu.reports"],
    "tutor": ["menu.dashboard", "menu.bookings"],
    "parent": ["menu.dashboard", "menu.products", "menu.bookings"],
}


def init_db() -> None:
    """
    Create tables + seed demo data.

    Small and deterministic so the authorization behavior can be tried
    without additional setup.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Role.id).limit(1)).first() is not None


def seed_rbac(db: Session) -> dict[str, Role]:
    """Permissions, roles and menus. Returns roles by name."""

    permissions: dict[str, Permission] = {}
    for code, display_name in PERMISSIONS:
        resource, _, action = code.partition(".")
        permissions[code] = Permission(code=code, resource=resource, action=action, display_name=display_name)
    for role_name, (_display, _scope, codes) in ROLES.items():
        for code in codes:
            if code not in permissions:
                resource, _, action = code.partition(".")
                permissions[code] = Permission(
                    code=code, resource=resource, action=action, display_name=f"All {resource} actions"
                )
    db.add_all(permissions.values())
    db.flush()

    menus: dict[str, Menu] = {}
    for code, menu_type, name, parent_code, permission_code, sort_order, path in MENUS:
        menu = Menu(
            code=code,
            type=menu_type,
            name=name,
            parent_id=menus[parent_code].id if parent_code else None,
            permission_id=permissions[permission_code].id if permission_code else None,
            sort_order=sort_order,
            path=path,
        )
        db.add(menu)
        db.flush()
        menus[code] = menu

    roles: dict[str, Role] = {}
    for role_name, (display_name, scope, codes) in ROLES.items():
        role = Role(name=role_name, display_name=display_name, data_scope=scope, is_system=True)
        role.permissions.extend(permissions[c] for c in codes)
        role.menus.extend(menus[c] for c in ROLE_MENUS.get(role_name, []))
        roles[role_name] = role
    db.add_all(roles.values())
    db.flush()
    return roles


def seed(db: Session) -> None:
    roles = seed_rbac(db)

    acme = Organization(name="Acme Learning", code="ACME")
    bright = Organization(name="Bright Minds", code="BRIGHT")
    db.add_all([acme, bright])
    db.flush()

    def user(username: str, org: Organization | None, *role_names: str) -> User:
        u = User(
            username=username,
            email=f"{username}@example.com",
            organization_id=org.id if org else None,
            status=UserStatus.ACTIVE,
        )
        for name in role_names:
            u.assignments.append(UserRole(role=roles[name]))
        db.add(u)
        return u

    user("ada_admin", None, "platform_admin")
    user("sam_staff", None, "platform_staff")
    pat = user("pat_partner", acme, "partner_admin")
    user("bea_partner", bright, "partner_admin")
    user("sid_staff", acme, "partner_staff")
    tom = user("tom_tutor", acme, "tutor")
    paula = user("paula_parent", None, "parent")
    user("pete_parent", None, "parent")
    db.flush()

    tutor = Tutor(user_id=tom.id, display_name="Tom T.")
    db.add(tutor)
    db.flush()

    db.add_all(
        [
            Booking(reference="B-1001", title="Piano lesson", organization_id=acme.id, parent_id=paula.id),
            Booking(
                reference="B-1002",
                title="Math tutoring",
                organization_id=bright.id,
                parent_id=paula.id,
                created_by_tutor_id=tutor.id,
            ),
            Booking(reference="B-2001", title="Chess club", organization_id=bright.id, parent_id=pat.id),
        ]
    )

    db.commit()
