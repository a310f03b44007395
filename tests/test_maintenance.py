# tests/test_maintenance.py
import json
from datetime import datetime, timedelta, timezone

from cicd_console import clean_old_logs
from cicd_console.cleanup_permissions import main
from cicd_console.database import models
from cicd_console.database.db_init import initialize_db
from cicd_console.services.identity_service import hash_password


def test_initialize_db_is_idempotent(engine, session_factory, db_session):
    initialize_db(bind=engine, session_factory=session_factory)
    initialize_db(bind=engine, session_factory=session_factory)

    [admin] = db_session.query(models.User).all()
    assert admin.username == "admin"
    assert admin.is_admin
    assert admin.password_hash == hash_password("admin123")
    [workspace] = db_session.query(models.Workspace).all()
    assert workspace.owner_id == admin.id


def test_cleanup_script(session_factory, db_session, capsys):
    db_session.add(models.Permission(user_id=77, resource_type="workspace", resource_id="3", permission_type="read"))
    db_session.commit()

    assert main(session_factory) == 0

    counts = json.loads(capsys.readouterr().out)
    assert counts["deleted_user_permissions"] == 1
    assert db_session.query(models.Permission).count() == 0


def test_clean_old_logs_script(session_factory, db_session, capsys):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    db_session.add_all([
        models.AuditLog(log_type="user", level="info", message="stale", created_at=now - timedelta(days=10)),
        models.AuditLog(log_type="user", level="info", message="fresh", created_at=now - timedelta(hours=1)),
    ])
    db_session.commit()

    assert clean_old_logs.main(session_factory, days=7) == 0

    assert capsys.readouterr().out.strip() == "Deleted 1 audit logs."
    db_session.expire_all()
    assert db_session.query(models.AuditLog).filter(models.AuditLog.message == "stale").count() == 0
    assert db_session.query(models.AuditLog).filter(models.AuditLog.message == "fresh").count() == 1
