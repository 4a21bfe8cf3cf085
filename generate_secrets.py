#!/usr/bin/env python3
"""
Generate secure secrets for the IPL Wager application
Run this script to generate the required SECRET_KEY and WTF_CSRF_SECRET_KEY
"""

import secrets


def generate_secrets():
    """Generate secure random keys and print them as .env lines"""
    print("🔐 Generating secure secrets for IPL Wager...")
    print("=" * 50)

    for name in ("SECRET_KEY", "WTF_CSRF_SECRET_KEY"):
        print(f"{name}={secrets.token_urlsafe(32)}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
