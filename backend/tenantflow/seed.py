import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenantflow.core.logging import configure_logging
from tenantflow.core.security import hash_password
from tenantflow.core.settings import Settings, get_settings
from tenantflow.db import Database
from tenantflow.models.enums import PLAN_LIMITS, ProjectStatus, Role, SubscriptionPlan, TaskPriority, TaskStatus
from tenantflow.models.project import Project
from tenantflow.models.task import Task
from tenantflow.models.tenant import Tenant
from tenantflow.models.user import User

logger = logging.getLogger(__name__)

DEMO_SUBDOMAIN = "demo"

DEMO_PROJECTS = [
    ("Onboarding Portal", "Build onboarding experience for new customers."),
    ("Mobile App", "Create cross-platform mobile app."),
]

# (project index, title, description, status, priority, assignee key)
DEMO_TASKS = [
    (0, "Design landing page", "Create responsive landing page for onboarding.", TaskStatus.TODO, TaskPriority.HIGH, "user1"),
    (0, "Set up CI/CD", "Add pipelines for backend and frontend.", TaskStatus.IN_PROGRESS, TaskPriority.MEDIUM, "admin"),
    (0, "Implement auth screens", "Login, registration, forgot password flows.", TaskStatus.TODO, TaskPriority.HIGH, "user2"),
    (1, "Build API client", "Create shared API client for mobile app.", TaskStatus.TODO, TaskPriority.MEDIUM, "user1"),
    (1, "Task sync", "Sync tasks between mobile and web.", TaskStatus.TODO, TaskPriority.HIGH, "user2"),
]


def seed_demo_data(db: Session, settings: Settings) -> bool:
    """Insert the demo tenant and its accounts. Returns False when already seeded."""
    superadmin_email = settings.DEFAULT_SUPERADMIN_EMAIL.strip().lower()
    exists = db.scalar(
        select(User.id).where(User.email == superadmin_email, User.role == Role.SUPER_ADMIN.value)
    )
    if exists:
        logger.info("Seed data already present, skipping")
        return False

    db.add(
        User(
            tenant_id=None,
            email=superadmin_email,
            password_hash=hash_password(settings.DEFAULT_SUPERADMIN_PASSWORD),
            full_name="Super Admin",
            role=Role.SUPER_ADMIN.value,
        )
    )

    max_users, max_projects = PLAN_LIMITS[SubscriptionPlan.PRO]
    tenant = Tenant(
        name="Demo Company",
        subdomain=DEMO_SUBDOMAIN,
        subscription_plan=SubscriptionPlan.PRO.value,
        max_users=max_users,
        max_projects=max_projects,
    )
    db.add(tenant)
    db.flush()

    user_password = hash_password("User@123")
    members = {
        "admin": User(
            tenant_id=tenant.id,
            email="admin@demo.com",
            password_hash=hash_password("Demo@123"),
            full_name="Demo Admin",
            role=Role.TENANT_ADMIN.value,
        ),
        "user1": User(
            tenant_id=tenant.id,
            email="user1@demo.com",
            password_hash=user_password,
            full_name="Demo User One",
            role=Role.USER.value,
        ),
        "user2": User(
            tenant_id=tenant.id,
            email="user2@demo.com",
            password_hash=user_password,
            full_name="Demo User Two",
            role=Role.USER.value,
        ),
    }
    db.add_all(members.values())
    db.flush()

    projects = [
        Project(
            tenant_id=tenant.id,
            name=name,
            description=description,
            status=ProjectStatus.ACTIVE.value,
            created_by=members["admin"].id,
        )
        for name, description in DEMO_PROJECTS
    ]
    db.add_all(projects)
    db.flush()

    for project_idx, title, description, status, priority, assignee in DEMO_TASKS:
        db.add(
            Task(
                project_id=projects[project_idx].id,
                tenant_id=tenant.id,
                title=title,
                description=description,
                status=status.value,
                priority=priority.value,
                assigned_to=members[assignee].id,
            )
        )

    db.commit()
    logger.info("Seeded demo tenant subdomain=%s", DEMO_SUBDOMAIN)
    return True


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    database = Database(settings.DATABASE_URL)
    try:
        database.create_all()
        with database.session() as session:
            seed_demo_data(session, settings)
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
