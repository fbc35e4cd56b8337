"""
Grant (or with --revoke, remove) admin rights.

  python make_admin.py owner@dramallama.ai
  python make_admin.py someone@dramallama.ai --revoke
"""
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.session import SessionLocal
from app.models import User
from app.utils.disposable_email import normalize_email


def main():
    parser = argparse.ArgumentParser(description="Grant or revoke admin rights")
    parser.add_argument("email")
    parser.add_argument("--revoke", action="store_true", help="Remove admin rights instead")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(args.email)).first()
        if not user:
            print(f"❌ No user with email {args.email}")
            sys.exit(1)
        user.is_admin = not args.revoke
        db.commit()
        state = "no longer an admin" if args.revoke else "now an admin"
        print(f"✅ {user.username} ({user.email}) is {state}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
