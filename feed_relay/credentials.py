"""Upstream API key lookup for Feed Relay."""

import json
import os

import boto3
from botocore.exceptions import ClientError

from .errors import ConfigurationMissing
from .logging_config import create_execution_logger


def get_api_key(
    env_var: str,
    aws_region: str = "us-east-1",
    execution_id: str | None = None,
    required: bool = True,
) -> str | None:
    """
    Resolve an upstream API key.

    The key is read from ``env_var``. When that is unset and
    ``<env_var>_SECRET_NAME`` names an AWS Secrets Manager secret, the key is
    read from the secret instead (plain string or JSON object).

    Args:
        env_var: Environment variable holding the key (e.g. TICKETMASTER_API_KEY)
        aws_region: AWS region for the Secrets Manager client
        execution_id: Execution ID for logging context
        required: Raise instead of returning None when no key is found

    Returns:
        The key, or None when it is optional and absent

    Raises:
        ConfigurationMissing: If a required key cannot be found
    """
    value = os.getenv(env_var, "").strip()
    if value:
        return value

    secret_name = os.getenv(f"{env_var}_SECRET_NAME", "").strip()
    if secret_name:
        value = get_secret_value(secret_name, aws_region, execution_id, env_var)
        if value:
            return value

    if required:
        raise ConfigurationMissing(
            f"{env_var} environment variable is not set",
            message=f"Missing required credential {env_var}",
        )
    return None


def get_secret_value(
    secret_name: str, aws_region: str, execution_id: str | None, key_hint: str = ""
) -> str | None:
    """
    Retrieve an API key from AWS Secrets Manager.

    Never logs the secret value. Returns None when the secret cannot be read
    or holds nothing usable; the caller decides whether that is fatal.
    """
    secrets_logger = create_execution_logger("credentials", execution_id)

    try:
        secrets_logger.info(f"Retrieving credential from Secrets Manager: {secret_name}")
        secrets_client = boto3.client("secretsmanager", region_name=aws_region)
        response = secrets_client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        secrets_logger.error(
            f"AWS Secrets Manager error retrieving {secret_name}: {error_code}"
        )
        return None

    secret_value = (response.get("SecretString") or "").strip()
    if not secret_value:
        secrets_logger.error(f"Secret {secret_name} contains empty value")
        return None

    try:
        secret_data = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value

    if not isinstance(secret_data, dict):
        # Scalars such as an all-digit key decode as JSON too.
        return secret_value

    candidates = [key_hint, key_hint.lower(), "api_key", "apikey", "key", "token"]
    for key in candidates:
        value = secret_data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    for value in secret_data.values():
        if isinstance(value, str) and value.strip():
            secrets_logger.info("Using first available value from JSON secret")
            return value.strip()

    secrets_logger.error(f"No usable value found in JSON secret {secret_name}")
    return None
