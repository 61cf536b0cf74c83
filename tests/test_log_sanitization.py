"""
Test log sanitization.

Verifies that API keys and other credentials are redacted from log events.
"""

import json
import logging

from transcript_engine.logging_config import (
    add_session_id,
    configure_logging,
    get_logger,
    sanitize_secrets,
    set_session_id,
)


class TestLogSanitization:
    """Tests for secret sanitization processor."""

    def test_redact_api_key(self):
        """Should redact api_key field."""
        event_dict = {
            'event': 'Testing',
            'api_key': 'sk-1234567890abcdef',
        }
        result = sanitize_secrets(None, None, event_dict)

        assert result['api_key'] == 'sk***REDACTED***'
        assert result['event'] == 'Testing'

    def test_redact_prefixed_key_names(self):
        """Should redact provider-prefixed credential names."""
        event_dict = {
            'openai_api_key': 'sk-abcdef',
            'OPENAI-ORGANIZATION': 'org-123',
            'refresh_token': 'abcdefgh',
        }
        result = sanitize_secrets(None, None, event_dict)

        assert result['openai_api_key'] == 'sk***REDACTED***'
        assert result['OPENAI-ORGANIZATION'] == 'org-123'
        assert 'REDACTED' in result['refresh_token']

    def test_redact_authorization_header(self):
        """Should redact authorization header values nested in a dict."""
        event_dict = {
            'event': 'HTTP request',
            'headers': {'Authorization': 'Bearer sk-1234567890abcdef', 'User-Agent': 'transcript-engine/1.0'},
        }
        result = sanitize_secrets(None, None, event_dict)

        assert result['headers']['Authorization'].startswith('Be***REDACTED***')
        assert result['headers']['User-Agent'] == 'transcript-engine/1.0'

    def test_short_values_fully_redacted(self):
        result = sanitize_secrets(None, None, {'password': 'abc'})
        assert result['password'] == '***REDACTED***'

    def test_empty_and_none_preserved(self):
        """Should preserve empty strings and None."""
        result = sanitize_secrets(None, None, {'api_key': '', 'token': None})

        assert result['api_key'] == ''
        assert result['token'] is None

    def test_list_with_sensitive_data(self):
        result = sanitize_secrets(None, None, {'api_keys': ['sk-key1', 'sk-key2']})
        assert all('REDACTED' in key for key in result['api_keys'])

    def test_list_of_dicts(self):
        event_dict = {'clients': [{'name': 'stt', 'secret': 'topsecret'}, {'name': 'analysis'}]}
        result = sanitize_secrets(None, None, event_dict)

        assert result['clients'][0]['name'] == 'stt'
        assert 'REDACTED' in result['clients'][0]['secret']
        assert result['clients'][1] == {'name': 'analysis'}

    def test_transcript_fields_untouched(self):
        """Should NOT redact transcript content or ids."""
        event_dict = {
            'transcript_preview': 'my password is hunter2',
            'item_id': 'item_123',
            'passthrough': True,
        }
        result = sanitize_secrets(None, None, event_dict)

        assert result == event_dict

    def test_actual_password_field_still_redacted(self):
        result = sanitize_secrets(None, None, {'user_password': 'secret123', 'pass': 'secret789'})

        assert 'REDACTED' in result['user_password']
        assert 'REDACTED' in result['pass']


class TestSessionContext:

    def test_session_id_added(self):
        set_session_id("abc123")
        assert add_session_id(None, None, {'event': 'x'})['session_id'] == 'abc123'

    def test_explicit_session_id_wins(self):
        set_session_id("abc123")
        assert add_session_id(None, None, {'session_id': 'other'})['session_id'] == 'other'

    def test_generated_session_id(self):
        value = set_session_id()
        assert len(value) == 12


class TestConfigureLogging:

    def test_json_output_is_sanitized(self, monkeypatch, capsys):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.delenv("LOG_TO_FILE", raising=False)
        configure_logging(log_level="INFO")

        set_session_id("sess42")
        get_logger("transcript_engine.tests").info("Client ready", api_key="sk-live-123456")
        line = capsys.readouterr().out.strip().splitlines()[-1]
        payload = json.loads(line)

        assert payload['event'] == 'Client ready'
        assert payload['api_key'] == 'sk***REDACTED***'
        assert payload['session_id'] == 'sess42'
        assert payload['service'] == 'transcript-engine'
        assert payload['level'] == 'info'

        logging.getLogger().handlers.clear()
