"""
Delete a user and everything that belongs to them (analyses, usage, events, promo usage).
Prints the user first; only deletes with --yes.

  python delete_user.py jamie@dramallama.ai
  python delete_user.py jamie@dramallama.ai --yes
"""
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.session import SessionLocal
from app.models import Analysis, PromoUsage, User, UserEvent
from app.utils.disposable_email import normalize_email


def main():
    parser = argparse.ArgumentParser(description="Delete a user account")
    parser.add_argument("email")
    parser.add_argument("--yes", action="store_true", help="Actually delete (default is a dry run)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(args.email)).first()
        if not user:
            print(f"❌ No user with email {args.email}")
            sys.exit(1)

        analyses = db.query(Analysis).filter(Analysis.user_id == user.id).count()
        events = db.query(UserEvent).filter(UserEvent.user_id == user.id).count()
        promos = db.query(PromoUsage).filter(PromoUsage.user_id == user.id).count()
        print(f"User {user.id}: {user.username} <{user.email}>, tier={user.tier}, admin={user.is_admin}")
        print(f"  {analyses} analyses, {events} events, {promos} promo redemptions")

        if not args.yes:
            print("Dry run. Re-run with --yes to delete.")
            return

        # Explicit deletes so SQLite (no FK cascade by default) behaves like Postgres
        db.query(UserEvent).filter(UserEvent.user_id == user.id).delete(synchronize_session=False)
        db.query(PromoUsage).filter(PromoUsage.user_id == user.id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()
        print(f"✅ Deleted user {args.email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
