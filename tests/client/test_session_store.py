import json
from datetime import timedelta

import pytest

from portal.client.session_store import (
    SESSION_KEY, FileSessionStore, MemorySessionStore, SessionStore, StoredSession, decode_for_display,
)
from portal.shared.roles import AccountKind, Role


@pytest.fixture
def file_store(tmp_path):
    return FileSessionStore(str(tmp_path / "session" / "portal.json"))


class TestSessionStore:

    def test_missing_file_means_logged_out(self, file_store):
        assert file_store.load() is None
        assert file_store.current_claim() is None

    def test_saved_session_survives_a_new_store(self, file_store, make_token):
        token = make_token(Role.ADMIN, account_id="adm-1")
        file_store.save_token(token, user={"name": "Admin"})

        reopened = FileSessionStore(str(file_store.path))
        session = reopened.load()

        assert session.token == token
        assert session.role == Role.ADMIN
        assert session.account_kind == AccountKind.STAFF
        assert session.user == {"name": "Admin"}
        assert reopened.current_claim().account_id == "adm-1"

    def test_blob_uses_single_well_known_key(self, file_store, make_token):
        file_store.save_token(make_token())
        blob = json.loads(file_store.path.read_text(encoding="utf-8"))
        assert list(blob) == [SESSION_KEY]

    def test_write_leaves_no_temporary_files(self, file_store, make_token):
        file_store.save_token(make_token())
        file_store.save_token(make_token(Role.ADMIN))
        assert [p.name for p in file_store.path.parent.iterdir()] == ["portal.json"]

    def test_clear_removes_the_slot(self, file_store, make_token):
        file_store.save_token(make_token())
        file_store.clear()
        assert file_store.load() is None
        # İkinci temizleme hata vermez
        file_store.clear()

    def test_corrupt_file_is_treated_as_logged_out(self, file_store):
        file_store.path.parent.mkdir(parents=True)
        file_store.path.write_text("{not json", encoding="utf-8")
        assert file_store.load() is None

        file_store.path.write_text(json.dumps({SESSION_KEY: {"token": "x"}}), encoding="utf-8")
        assert file_store.load() is None

    def test_undecodable_token_yields_no_claim(self):
        store = MemorySessionStore()
        store._write(StoredSession(token="garbage", account_kind=AccountKind.STAFF, role=Role.TEACHER))
        assert store.current_claim() is None

    def test_decode_reads_claim_without_secret(self, make_token):
        claim = decode_for_display(make_token(Role.SUPER_ADMIN, account_id="sa-1", tenant_id="uni-9"))
        assert claim.role == Role.SUPER_ADMIN
        assert claim.tenant_id == "uni-9"
        assert claim.school_id is None
        assert not claim.is_expired()

    def test_expired_claim_is_reported(self, make_token):
        claim = decode_for_display(make_token(expires_delta=timedelta(seconds=-5)))
        assert claim.is_expired()

    def test_expired_session_has_no_claim(self, make_token):
        store = MemorySessionStore()
        store.save_token(make_token(expires_delta=timedelta(seconds=-5)))

        assert store.load() is not None
        assert store.current_claim() is None

    def test_store_without_storage_cannot_be_built(self):
        class HalfStore(SessionStore):
            def load(self):
                return None

        with pytest.raises(TypeError):
            SessionStore()
        with pytest.raises(TypeError):
            HalfStore()
