#!/usr/bin/env python3
"""
Issue Development Token

Prints a bearer token for an owner id, signed with JWT_SECRET_KEY.
Production tokens come from the identity provider; this is for local
testing of the API and the Streamlit UI.

Usage:
    $ JWT_SECRET_KEY=... python scripts/issue_token.py doctor@example.com
    $ python scripts/issue_token.py doctor@example.com --minutes 480
"""

import argparse
import os
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from casenote.core.exceptions import AuthError  # noqa: E402
from casenote.core.security import create_access_token  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Issue a CaseNote bearer token")
    parser.add_argument("owner_id", help="Owner identifier (e.g. clinician email)")
    parser.add_argument(
        "--minutes", type=int, default=60, help="Token lifetime in minutes"
    )
    args = parser.parse_args()

    owner_id = args.owner_id.strip().lower()
    if not owner_id:
        parser.error("owner_id must not be empty")

    try:
        token = create_access_token(owner_id, expires_minutes=args.minutes)
    except AuthError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
