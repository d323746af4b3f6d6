import logging

from portal.backend.logging.logging_config import SecretRedactingFilter, setup_logging
from portal.backend.tools.credentials import hash_secret


def make_record(msg, *args) -> logging.LogRecord:
    return logging.LogRecord("portal.test", logging.INFO, __file__, 1, msg, args, None)


class TestSecretRedactingFilter:

    def test_bearer_header_is_masked(self):
        record = make_record("Authorization: Bearer %s", "abc.def.ghi")
        assert SecretRedactingFilter().filter(record)
        assert record.getMessage() == "Authorization: Bearer [REDACTED]"

    def test_bare_jwt_is_masked(self, make_token):
        token = make_token()
        record = make_record(f"token={token} accepted")
        SecretRedactingFilter().filter(record)
        assert token not in record.getMessage()
        assert record.getMessage() == "token=[REDACTED] accepted"

    def test_password_hash_is_masked(self):
        hashed = hash_secret("long-password")
        record = make_record("stored %s", hashed)
        SecretRedactingFilter().filter(record)
        assert hashed not in record.getMessage()

    def test_plain_messages_are_untouched(self):
        record = make_record("Login attempt for account kind '%s'.", "staff")
        SecretRedactingFilter().filter(record)
        assert record.args == ("staff",)
        assert record.getMessage() == "Login attempt for account kind 'staff'."

    def test_setup_logging_installs_filtered_handlers(self, tmp_path):
        root = logging.getLogger()
        saved = root.handlers[:]
        try:
            setup_logging(log_dir=str(tmp_path))
            assert len(root.handlers) == 2
            assert all(any(isinstance(f, SecretRedactingFilter) for f in h.filters) for h in root.handlers)
            assert (tmp_path / "portal.log").exists()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved
