#!/usr/bin/env python3
"""
Issues a dev JWT signed with AUTH_JWT_SIGNING.
Usage: scripts/issue_dev_token.py [user_id] [--ttl SECONDS]
"""
import argparse
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from calmly.identity.jwt_service import JwtService  # noqa: E402

SECRET = os.getenv("AUTH_JWT_SIGNING", "dev-jwt-secret-1234")


def issue_token(user_id: str, ttl: int | None) -> str:
    claims = {
        "sub": user_id,
        "email": f"{user_id}@local.test",
    }
    return JwtService(SECRET).issue_token(claims, ttl_seconds=ttl)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", nargs="?", default="dev-user-001")
    parser.add_argument("--ttl", type=int, default=None, help="token lifetime in seconds")
    args = parser.parse_args()
    print(issue_token(args.user_id, args.ttl))


if __name__ == "__main__":
    main()
