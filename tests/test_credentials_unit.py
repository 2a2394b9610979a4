"""Unit tests for API key lookup."""

import json
import os
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws

from feed_relay.credentials import get_api_key, get_secret_value
from feed_relay.errors import ConfigurationMissing

REGION = "us-east-1"


class TestGetApiKeyUnit:
    """Unit tests for get_api_key."""

    def test_reads_environment_variable(self):
        with patch.dict(os.environ, {"TICKETMASTER_API_KEY": "  tm-key  "}, clear=True):
            assert get_api_key("TICKETMASTER_API_KEY") == "tm-key"

    def test_missing_required_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationMissing) as exc_info:
                get_api_key("RAPIDAPI_KEY")

        assert exc_info.value.status_code == 500
        assert "RAPIDAPI_KEY" in exc_info.value.message
        assert "RAPIDAPI_KEY" in exc_info.value.details

    def test_missing_optional_key(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_api_key("RENTSPREE_API_KEY", required=False) is None

    def test_blank_value_counts_as_missing(self):
        with patch.dict(os.environ, {"RAPIDAPI_KEY": "   "}, clear=True):
            assert get_api_key("RAPIDAPI_KEY", required=False) is None

    @mock_aws
    def test_falls_back_to_secrets_manager(self):
        boto3.client("secretsmanager", region_name=REGION).create_secret(
            Name="feed-relay/ticketmaster", SecretString="secret-key"
        )
        env = {
            "TICKETMASTER_API_KEY_SECRET_NAME": "feed-relay/ticketmaster",
            "AWS_ACCESS_KEY_ID": "testing",
            "AWS_SECRET_ACCESS_KEY": "testing",
        }
        with patch.dict(os.environ, env, clear=True):
            assert get_api_key("TICKETMASTER_API_KEY", REGION) == "secret-key"

    @mock_aws
    def test_unknown_secret_still_raises(self):
        env = {
            "RAPIDAPI_KEY_SECRET_NAME": "does-not-exist",
            "AWS_ACCESS_KEY_ID": "testing",
            "AWS_SECRET_ACCESS_KEY": "testing",
        }
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationMissing):
                get_api_key("RAPIDAPI_KEY", REGION)


@mock_aws
class TestGetSecretValueUnit:
    """Unit tests for get_secret_value against a mocked Secrets Manager."""

    def create(self, name: str, value: str) -> None:
        boto3.client("secretsmanager", region_name=REGION).create_secret(
            Name=name, SecretString=value
        )

    def test_plain_string(self):
        self.create("plain", "  abc123  ")
        assert get_secret_value("plain", REGION, "test-exec") == "abc123"

    def test_json_with_matching_key(self):
        self.create("json", json.dumps({"other": "x", "RAPIDAPI_KEY": "rapid"}))
        assert get_secret_value("json", REGION, "test-exec", "RAPIDAPI_KEY") == "rapid"

    def test_json_with_generic_key(self):
        self.create("generic", json.dumps({"api_key": "generic-key"}))
        assert get_secret_value("generic", REGION, "test-exec", "RAPIDAPI_KEY") == "generic-key"

    def test_json_first_string_value(self):
        self.create("first", json.dumps({"count": 3, "value": "first-key"}))
        assert get_secret_value("first", REGION, "test-exec") == "first-key"

    def test_json_without_usable_value(self):
        self.create("empty", json.dumps({"count": 3}))
        assert get_secret_value("empty", REGION, "test-exec") is None

    def test_numeric_secret(self):
        self.create("digits", "12345")
        assert get_secret_value("digits", REGION, "test-exec") == "12345"

    def test_missing_secret(self):
        assert get_secret_value("missing", REGION, "test-exec") is None
