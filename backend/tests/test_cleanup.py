from datetime import datetime, timedelta

from conftest import TestingSessionLocal
from fileshare import cleanup, crud


def test_cleanup_script_sweeps_expired_shares(db, make_user, make_file, manager, clock, monkeypatch):
    monkeypatch.setattr(cleanup, "SessionLocal", TestingSessionLocal)
    owner = make_user()
    file = make_file(owner)
    share = manager.create_share(file.id, owner.id, expires_at=clock() + timedelta(days=1)).share
    crud.share.update_fields(db, share_id=share.id, fields={"expires_at": datetime(2000, 1, 1)})

    assert cleanup.run() == 1
    assert cleanup.run() == 0

    db.refresh(share)
    assert share.is_active is False
