"""Tests for graphtool/config.py: Settings built from env and overrides."""

import pytest

from graphtool.config import (
    Settings,
    load_settings,
    retry_policy,
    validate_settings,
    without_credentials,
)
from graphtool.exceptions import ConfigurationError

from conftest import CLIENT_ID, MAILBOX, TENANT_ID


def make_settings(monkeypatch, **env):
    """Apply MSGRAPH_* env overrides then construct a fresh Settings instance."""
    for k, v in env.items():
        monkeypatch.setenv(f"MSGRAPH_{k.upper()}", str(v))
    return Settings()


def test_defaults(monkeypatch):
    s = make_settings(monkeypatch)
    assert s.action == "getinbox"
    assert s.count == 3
    assert s.max_retries == 3
    assert s.retry_delay_ms == 2000
    assert s.subject == "Automated Tool Notification"
    assert s.output_format == "text"
    assert s.audit_enabled is True


def test_env_prefix(monkeypatch):
    s = make_settings(monkeypatch, tenant_id=TENANT_ID, mailbox=MAILBOX, action="GetEvents")
    assert s.tenant_id == TENANT_ID
    assert s.mailbox == MAILBOX
    assert s.action == "getevents"


def test_recipient_lists_parsed_from_comma_string(monkeypatch):
    s = make_settings(monkeypatch, to="a@x.com, b@x.com,,", cc="c@x.com", attachments="one.txt,two.pdf")
    assert s.to_recipients == ["a@x.com", "b@x.com"]
    assert s.cc_recipients == ["c@x.com"]
    assert s.bcc_recipients == []
    assert s.attachment_paths == ["one.txt", "two.pdf"]


def test_overrides_beat_environment(monkeypatch):
    monkeypatch.setenv("MSGRAPH_COUNT", "7")
    assert load_settings(count=2).count == 2


def test_none_overrides_ignored(monkeypatch):
    monkeypatch.setenv("MSGRAPH_COUNT", "7")
    assert load_settings(count=None).count == 7


def test_retry_delay_in_seconds():
    s = load_settings(retry_delay_ms=1500, max_retries=5)
    assert s.retry_delay == 1.5
    policy = retry_policy(s)
    assert policy.max_retries == 5
    assert policy.base_delay == 1.5
    assert policy.max_delay == 30.0


@pytest.mark.parametrize("overrides", [
    {"action": "deleteall"},
    {"output_format": "xml"},
    {"log_level": "TRACE"},
    {"count": 0},
    {"max_retries": -1},
    {"retry_delay_ms": 0},
])
def test_invalid_values_raise_configuration_error(overrides):
    with pytest.raises(ConfigurationError, match="invalid configuration"):
        load_settings(**overrides)


def test_no_upper_bound_on_retries():
    assert load_settings(max_retries=25).max_retries == 25


def test_legacy_env_names_are_read(monkeypatch):
    monkeypatch.setenv("MSGRAPHTENANTID", TENANT_ID)
    monkeypatch.setenv("MSGRAPHPFXPASS", "legacy-pass")
    monkeypatch.setenv("MSGRAPHWHATIF", "true")
    monkeypatch.setenv("MSGRAPHRETRYDELAY", "500")
    s = load_settings()
    assert s.tenant_id == TENANT_ID
    assert s.pfx_password == "legacy-pass"
    assert s.whatif is True
    assert s.retry_delay_ms == 500


def test_new_env_names_beat_legacy(monkeypatch):
    monkeypatch.setenv("MSGRAPHMAILBOX", "old.com")
    monkeypatch.setenv("MSGRAPH_MAILBOX", "new.com")
    assert load_settings().mailbox == "new.com"


def test_flags_beat_legacy_env(monkeypatch):
    monkeypatch.setenv("MSGRAPHCOUNT", "8")
    assert load_settings(count=2).count == 2


def test_without_credentials_blanks_secrets_only():
    s = load_settings(secret="abc", pfx_path="app.pfx", pfx_password="pw", mailbox=MAILBOX)
    stripped = without_credentials(s)
    assert stripped.secret == ""
    assert stripped.pfx_password == ""
    assert stripped.pfx_path == "app.pfx"
    assert stripped.mailbox == MAILBOX
    assert s.secret == "abc"


def test_warn_log_level_alias():
    assert load_settings(log_level="warn").log_level == "WARNING"


class TestValidateSettings:
    @pytest.fixture
    def valid(self):
        return dict(tenant_id=TENANT_ID, client_id=CLIENT_ID, mailbox=MAILBOX, secret="x")

    def test_valid_passes(self, valid):
        validate_settings(load_settings(**valid))

    def test_bad_tenant_id(self, valid):
        valid["tenant_id"] = "not-a-guid"
        with pytest.raises(ConfigurationError, match="tenant id should be a GUID"):
            validate_settings(load_settings(**valid))

    def test_missing_mailbox(self, valid):
        valid["mailbox"] = ""
        with pytest.raises(ConfigurationError, match="mailbox cannot be empty"):
            validate_settings(load_settings(**valid))

    def test_bad_cc_address(self, valid):
        valid["cc"] = "ok@example.com,broken"
        with pytest.raises(ConfigurationError, match="cc contains invalid email"):
            validate_settings(load_settings(**valid))

    def test_getschedule_requires_recipient(self, valid):
        valid["action"] = "getschedule"
        with pytest.raises(ConfigurationError, match="recipient is required"):
            validate_settings(load_settings(**valid))
        valid["recipient"] = "boss@example.com"
        validate_settings(load_settings(**valid))

    def test_searchandexport_requires_message_id(self, valid):
        valid["action"] = "searchandexport"
        with pytest.raises(ConfigurationError, match="message ID cannot be empty"):
            validate_settings(load_settings(**valid))
        valid["message_id"] = "<abc@host.example.com>"
        validate_settings(load_settings(**valid))

    def test_missing_body_template(self, valid, tmp_path):
        valid["body_template"] = str(tmp_path / "missing.html")
        with pytest.raises(ConfigurationError, match="body template file not found"):
            validate_settings(load_settings(**valid))

    def test_unparseable_start_time_is_not_fatal(self, valid):
        valid["action"] = "sendinvite"
        valid["start_time"] = "tomorrow-ish"
        validate_settings(load_settings(**valid))
