"""
Send a fresh verification code to every user who has not verified their email.

  python resend_pending_verifications.py            # dry run, lists users
  python resend_pending_verifications.py --send
"""
import argparse
import sys
import os
from datetime import datetime, timedelta

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.session import SessionLocal
from app.models import User
from app.services import email_service


def main():
    parser = argparse.ArgumentParser(description="Resend verification emails to unverified users")
    parser.add_argument("--send", action="store_true", help="Send the emails (default is a dry run)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        pending = db.query(User).filter(User.email_verified.is_(False)).order_by(User.id).all()
        print(f"Found {len(pending)} unverified users")
        sent = failed = 0
        for user in pending:
            if not args.send:
                print(f"  would send to {user.email}")
                continue
            user.verification_code = email_service.generate_verification_code()
            user.verification_code_expires = datetime.utcnow() + timedelta(hours=24)
            db.commit()
            if email_service.send_verification_email(user.username, user.email, user.verification_code):
                sent += 1
                print(f"  ✅ {user.email}")
            else:
                failed += 1
                print(f"  ❌ {user.email}")
        if args.send:
            print(f"\nDone: {sent} sent, {failed} failed")
    finally:
        db.close()


if __name__ == "__main__":
    main()
