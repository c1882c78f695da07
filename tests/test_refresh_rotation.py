from __future__ import annotations

import sqlite3
import uuid
from pathlib import Path

import pytest

from webapp_auth.api.auth.refresh_tokens import (
    RefreshTokenError,
    issue_session,
    revoke_all_sessions,
    revoke_session_best_effort,
    rotate_session,
)
from webapp_auth.api.models import AuthStore, User, now_ts
from webapp_auth.api.security import create_refresh_token, verify_access_token, verify_refresh_token
from webapp_auth.utils.crypto import sha256_hex


@pytest.fixture
def db(tmp_path: Path) -> AuthStore:
    return AuthStore(tmp_path / "auth.db")


@pytest.fixture
def user(db: AuthStore) -> User:
    ts = now_ts()
    return db.create_user(
        User(
            id=str(uuid.uuid4()),
            name="Alice",
            email="alice@example.com",
            password_hash="h",
            avatar=None,
            created_at=ts,
            updated_at=ts,
        )
    )


def _jti(token: str) -> str:
    return str(verify_refresh_token(token).jti)


def test_issue_stores_only_hash(db: AuthStore, user: User) -> None:
    pair = issue_session(store=db, user=user, created_ip="10.0.0.1", user_agent="pytest")
    assert verify_access_token(pair.access_token).sub == user.id
    rec = db.get_session(_jti(pair.refresh_token))
    assert rec is not None
    assert rec.token_hash == sha256_hex(pair.refresh_token)
    assert pair.refresh_token not in (rec.token_hash, rec.jti)
    assert rec.created_ip == "10.0.0.1"
    assert rec.expires_at == verify_refresh_token(pair.refresh_token).exp
    assert not rec.revoked


def test_rotation_chains_sessions(db: AuthStore, user: User) -> None:
    pair = issue_session(store=db, user=user)
    res = rotate_session(store=db, refresh_token=pair.refresh_token)
    assert res.user.id == user.id
    assert res.tokens.refresh_token != pair.refresh_token
    assert res.old_jti == _jti(pair.refresh_token)
    assert res.new_jti == _jti(res.tokens.refresh_token)

    old = db.get_session(res.old_jti)
    assert old is not None and old.revoked and old.replaced_by == res.new_jti
    assert [s.jti for s in db.list_active_sessions(user.id)] == [res.new_jti]

    again = rotate_session(store=db, refresh_token=res.tokens.refresh_token)
    assert again.old_jti == res.new_jti


def test_replay_of_rotated_token_revokes_everything(db: AuthStore, user: User) -> None:
    stolen = issue_session(store=db, user=user)
    other_device = issue_session(store=db, user=user)
    fresh = rotate_session(store=db, refresh_token=stolen.refresh_token)

    with pytest.raises(RefreshTokenError, match="replay"):
        rotate_session(store=db, refresh_token=stolen.refresh_token)

    assert db.list_active_sessions(user.id) == []
    with pytest.raises(RefreshTokenError):
        rotate_session(store=db, refresh_token=fresh.tokens.refresh_token)
    with pytest.raises(RefreshTokenError):
        rotate_session(store=db, refresh_token=other_device.refresh_token)


def test_revoked_token_rejected_without_cascade(db: AuthStore, user: User) -> None:
    a = issue_session(store=db, user=user)
    b = issue_session(store=db, user=user)
    assert revoke_session_best_effort(store=db, refresh_token=a.refresh_token, user_id=user.id)
    with pytest.raises(RefreshTokenError, match="revoked"):
        rotate_session(store=db, refresh_token=a.refresh_token)
    assert [s.jti for s in db.list_active_sessions(user.id)] == [_jti(b.refresh_token)]


def test_unknown_and_malformed_tokens(db: AuthStore, user: User) -> None:
    unstored = create_refresh_token(user_id=user.id, email=user.email)
    with pytest.raises(RefreshTokenError, match="unknown"):
        rotate_session(store=db, refresh_token=unstored)
    with pytest.raises(RefreshTokenError, match="invalid"):
        rotate_session(store=db, refresh_token="garbage")


def test_hash_mismatch_revokes_all(db: AuthStore, user: User) -> None:
    pair = issue_session(store=db, user=user)
    con = sqlite3.connect(str(db.db_path))
    con.execute("UPDATE sessions SET token_hash='x' WHERE jti=?", (_jti(pair.refresh_token),))
    con.commit()
    con.close()
    with pytest.raises(RefreshTokenError, match="mismatch"):
        rotate_session(store=db, refresh_token=pair.refresh_token)
    assert db.list_active_sessions(user.id) == []


def test_expired_session_rejected(db: AuthStore, user: User) -> None:
    pair = issue_session(store=db, user=user)
    jti = _jti(pair.refresh_token)
    con = sqlite3.connect(str(db.db_path))
    con.execute("UPDATE sessions SET expires_at=? WHERE jti=?", (now_ts() - 1, jti))
    con.commit()
    con.close()
    with pytest.raises(RefreshTokenError, match="expired"):
        rotate_session(store=db, refresh_token=pair.refresh_token)
    rec = db.get_session(jti)
    assert rec is not None and rec.revoked and not rec.rotated


def test_lost_rotation_race_revokes_all(
    db: AuthStore, user: User, monkeypatch: pytest.MonkeyPatch
) -> None:
    pair = issue_session(store=db, user=user)
    monkeypatch.setattr(db, "mark_rotated", lambda **_: False)
    with pytest.raises(RefreshTokenError, match="already used"):
        rotate_session(store=db, refresh_token=pair.refresh_token)
    assert db.list_active_sessions(user.id) == []


def test_logout_ignores_foreign_tokens(db: AuthStore, user: User) -> None:
    pair = issue_session(store=db, user=user)
    assert not revoke_session_best_effort(store=db, refresh_token=pair.refresh_token, user_id="other")
    assert not revoke_session_best_effort(store=db, refresh_token="garbage")
    assert len(db.list_active_sessions(user.id)) == 1


def test_revoke_all(db: AuthStore, user: User) -> None:
    for _ in range(3):
        issue_session(store=db, user=user)
    assert revoke_all_sessions(store=db, user_id=user.id) == 3
    assert db.list_active_sessions(user.id) == []
