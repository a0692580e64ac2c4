"""
Re-authorize sheetsdiff with Google.

Run this on first setup, or after a run exits with status 2 because the
refresh token was revoked. Deletes the existing token and triggers a fresh
browser auth flow, then checks the new token with one refresh.

Usage:
    python3 scripts/authorize.py
    python3 scripts/authorize.py --env-file ~/watch/.env
"""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sheetsdiff.config import load_settings
from sheetsdiff.credential_store import CredentialStore
from sheetsdiff.google_auth import SCOPES, CredentialFile, GoogleTokenEndpoint, run_consent_flow

parser = argparse.ArgumentParser(description="Re-authorize sheetsdiff with Google.")
parser.add_argument("--env-file", metavar="PATH")
args = parser.parse_args()

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
settings = load_settings(args.env_file)

token_file = CredentialFile(settings.token_file)
if token_file.delete():
    print(f"Deleted old token: {token_file.path}")

print(f"Requesting {len(SCOPES)} scope(s):")
for s in SCOPES:
    print(f"  {s}")
print()

credential = run_consent_flow(settings.client_secret_file, token_file)   # triggers the browser flow
print(f"\nRe-auth complete. Token saved to {token_file.path}")

# Quick smoke test: the new refresh token must be accepted
store = CredentialStore(credential, token_file, GoogleTokenEndpoint())
store.refresh()
print("Refresh token: OK")
print("\nAll good.")
