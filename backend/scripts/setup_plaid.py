#!/usr/bin/env python3
"""Deployment setup for Plaid and token encryption.

Validates Plaid API credentials by creating a link token, generates a
Fernet ``ENCRYPTION_KEY`` for access tokens at rest, and offers to store
the secrets in the OS keychain.

Usage:
    1. Sign up at https://dashboard.plaid.com/
    2. Get your client_id and secret from the Keys page
    3. Run this script and follow the prompts
    4. Register the printed webhook URL in the Plaid dashboard
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from logging_config import setup_logging
from services.credential_manager import store_credentials
from services.encryption_service import EncryptionService


def _offer_keychain_store(credentials: dict[str, str]) -> None:
    """Prompt the user to store credentials in the keychain."""
    answer = input("\nStore these secrets in the system keychain? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes"):
        for key, stored in store_credentials(credentials).items():
            if stored:
                print(f"  Stored {key} in keychain")
            else:
                print(f"  Failed to store {key}")
    else:
        print("  Skipped keychain storage.")


def validate_credentials(client_id: str, secret: str, env: str) -> str:
    """Validate Plaid credentials by creating a test link token.

    Returns:
        The link token Plaid issued.

    Raises:
        ProviderError: If Plaid rejects the call.
    """
    client = PlaidClient(client_id=client_id, secret=secret, environment=env)
    token = client.create_link_token("setup-test")
    if not token.get("link_token"):
        raise ProviderError("No link_token in response", provider_name="Plaid")
    return token["link_token"]


def ensure_encryption_key(existing: str | None = None) -> tuple[str, bool]:
    """Return ``(key, generated)``; a valid existing key is kept."""
    if existing:
        EncryptionService(existing)
        return existing, False
    return EncryptionService.generate_key(), True


def main():
    """Prompt for credentials and validate them."""
    setup_logging("WARNING")
    print("Plaid Setup")
    print("=" * 50)
    print()

    client_id = input("Enter your Plaid client_id: ").strip()
    if not client_id:
        print("Error: No client_id provided")
        sys.exit(1)

    secret = input("Enter your Plaid secret: ").strip()
    if not secret:
        print("Error: No secret provided")
        sys.exit(1)

    print()
    print("Choose environment:")
    print("  1. sandbox (for testing with fake data)")
    print("  2. production (for live use)")
    env_choice = input("Enter choice (1 or 2) [1]: ").strip() or "1"
    env = {"1": "sandbox", "2": "production"}.get(env_choice, "sandbox")

    print()
    print(f"Validating credentials against {env} environment...")
    try:
        validate_credentials(client_id, secret, env)
    except ProviderError as e:
        print(f"Error: {e}")
        print()
        print("Common issues:")
        print("  - Incorrect client_id or secret")
        print("  - Wrong environment selected")
        sys.exit(1)

    key, generated = ensure_encryption_key(settings.ENCRYPTION_KEY)
    secrets = {"PLAID_CLIENT_ID": client_id, "PLAID_SECRET": secret}
    if generated:
        secrets["ENCRYPTION_KEY"] = key

    print()
    print("Success! Configuration:")
    print()
    print(f"PLAID_ENVIRONMENT={env}")
    for name, value in secrets.items():
        print(f"{name}={value}")
    print()
    print(f"Webhook URL to register with Plaid: {settings.webhook_url}")
    if generated:
        print()
        print("A new ENCRYPTION_KEY was generated. Losing it makes every stored")
        print("access token unreadable; users would have to re-link.")

    _offer_keychain_store(secrets)


if __name__ == "__main__":
    main()
