from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from webapp_auth.api.models import AuthStore, DuplicateEmailError, User, now_ts


def _user(email: str = "a@example.com", name: str = "Alice") -> User:
    ts = now_ts()
    return User(
        id=str(uuid.uuid4()),
        name=name,
        email=email,
        password_hash="h",
        avatar=None,
        created_at=ts,
        updated_at=ts,
    )


@pytest.fixture
def db(tmp_path: Path) -> AuthStore:
    return AuthStore(tmp_path / "state" / "auth.db")


def test_users_crud(db: AuthStore) -> None:
    u = db.create_user(_user())
    assert db.ping()
    assert db.get_user(u.id) == u
    assert db.get_user_by_email("A@Example.com") == u
    with pytest.raises(DuplicateEmailError):
        db.create_user(_user(email="a@EXAMPLE.com"))

    other = db.create_user(_user(email="b@example.com", name="Bob"))
    with pytest.raises(DuplicateEmailError):
        db.update_user(other.id, email="a@example.com")

    updated = db.update_user(u.id, name="Alicia", avatar="https://img.example.com/a.png")
    assert updated is not None
    assert updated.name == "Alicia"
    assert updated.avatar == "https://img.example.com/a.png"
    cleared = db.update_user(u.id, clear_avatar=True)
    assert cleared is not None and cleared.avatar is None

    db.set_password_hash(u.id, "h2")
    assert db.get_user(u.id).password_hash == "h2"  # type: ignore[union-attr]


def test_public_dict_hides_hash(db: AuthStore) -> None:
    u = db.create_user(_user())
    pub = u.public_dict()
    assert "password_hash" not in pub
    assert set(pub) == {"id", "name", "email", "avatar", "createdAt", "updatedAt"}
    assert pub["createdAt"].endswith("Z")


def test_sessions_lifecycle(db: AuthStore) -> None:
    u = db.create_user(_user())
    now = now_ts()
    db.put_session(jti="j1", user_id=u.id, token_hash="t1", created_at=now, expires_at=now + 60)
    db.put_session(jti="j2", user_id=u.id, token_hash="t2", created_at=now, expires_at=now + 60)
    db.put_session(jti="old", user_id=u.id, token_hash="t0", created_at=now - 120, expires_at=now - 60)

    assert {s.jti for s in db.list_active_sessions(u.id)} == {"j1", "j2"}

    assert db.mark_rotated(old_jti="j1", new_jti="j3") is True
    # A row can only be retired once.
    assert db.mark_rotated(old_jti="j1", new_jti="j4") is False
    rec = db.get_session("j1")
    assert rec is not None and rec.revoked and rec.rotated and rec.replaced_by == "j3"

    assert db.revoke_session("j2", user_id="someone-else") == 0
    assert db.revoke_session("j2", user_id=u.id) == 1
    assert db.revoke_session("j2") == 0
    assert db.list_active_sessions(u.id) == []

    assert db.prune_expired_sessions() == 1
    assert db.get_session("old") is None


def test_revoke_user_sessions(db: AuthStore) -> None:
    u = db.create_user(_user())
    now = now_ts()
    for i in range(3):
        db.put_session(jti=f"j{i}", user_id=u.id, token_hash=f"t{i}", created_at=now, expires_at=now + 60)
    assert db.revoke_user_sessions(u.id) == 3
    assert db.revoke_user_sessions(u.id) == 0
    assert db.list_active_sessions(u.id) == []


def test_delete_user_keeps_audit_rows(db: AuthStore) -> None:
    u = db.create_user(_user())
    now = now_ts()
    db.put_session(jti="j1", user_id=u.id, token_hash="t1", created_at=now, expires_at=now + 60)
    db.add_audit_log(action="USER_LOGIN", resource="auth", user_id=u.id, ip_address="1.2.3.4")
    assert db.delete_user(u.id) is True
    assert db.get_user(u.id) is None
    assert db.get_session("j1") is None
    logs = db.list_audit_logs(action="USER_LOGIN")
    assert len(logs) == 1
    assert logs[0].user_id is None
    assert logs[0].ip_address == "1.2.3.4"
    assert db.delete_user(u.id) is False


def test_audit_log_filters(db: AuthStore) -> None:
    u = db.create_user(_user())
    db.add_audit_log(action="USER_LOGIN", resource="auth", user_id=u.id)
    db.add_audit_log(action="USER_UPDATED", resource="user", user_id=u.id, details={"name": "A"})
    db.add_audit_log(action="USER_DELETED", resource="user", details={"deletedUserId": "x"})
    assert [a.action for a in db.list_audit_logs(user_id=u.id)] == ["USER_UPDATED", "USER_LOGIN"]
    upd = db.list_audit_logs(action="USER_UPDATED")[0]
    assert upd.details == {"name": "A"}
    assert len(db.list_audit_logs(limit=1)) == 1
