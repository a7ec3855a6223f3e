"""Create a demo account with a handful of sample tasks."""
from taskboard.clock import now_ms
from taskboard.database import get_session, create_tables
from taskboard.models import TaskPriority, TaskStatus, User
from taskboard.routers.auth import get_password_hash
from taskboard.store import task_store
from sqlmodel import select

DEMO_EMAIL = "test@example.com"
DEMO_PASSWORD = "password"
DAY_MS = 24 * 60 * 60 * 1000

create_tables()

with get_session() as db:
    existing_user = db.exec(select(User).where(User.email == DEMO_EMAIL)).first()
    if existing_user:
        print("User already exists")
    else:
        user = User(email=DEMO_EMAIL, hashed_password=get_password_hash(DEMO_PASSWORD))
        db.add(user)
        db.commit()
        db.refresh(user)

        now = now_ms()
        task_store.create_task(db, user.id, title="Write project brief", priority=TaskPriority.HIGH, due_date=now + DAY_MS)
        task_store.create_task(db, user.id, title="Review pull requests", status=TaskStatus.IN_PROGRESS)
        task_store.create_task(db, user.id, title="Book team lunch", status=TaskStatus.COMPLETED)
        print(f"Test user created: {DEMO_EMAIL} / {DEMO_PASSWORD} (3 sample tasks)")
