# scripts/setup/hash_password.py
"""
Generate the bcrypt hash for the admin password.
Put the printed line in .env; the plaintext is never stored.
Usage: python scripts/setup/hash_password.py
"""

import sys
import os
import getpass
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.utils.security import hash_admin_password, verify_admin_password


def main():
    password = getpass.getpass("Admin password: ")
    if len(password) < 8:
        print("❌ Use at least 8 characters")
        sys.exit(1)
    if getpass.getpass("Repeat password: ") != password:
        print("❌ Passwords do not match")
        sys.exit(1)

    hashed = hash_admin_password(password)
    assert verify_admin_password(password, hashed)
    print("\n✅ Add this to your .env:")
    print(f"ADMIN_PASSWORD_HASH='{hashed}'")


if __name__ == "__main__":
    main()
