"""
Mark a user's email as verified without the emailed code (support requests).

  python verify_user_manual.py jamie@dramallama.ai
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.db.session import SessionLocal
from app.models import User, UserEventType
from app.services.analytics import track_user_event
from app.utils.disposable_email import normalize_email


def main():
    if len(sys.argv) != 2:
        print("Usage: python verify_user_manual.py <email>")
        sys.exit(1)

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(sys.argv[1])).first()
        if not user:
            print(f"❌ No user with email {sys.argv[1]}")
            sys.exit(1)
        if user.email_verified:
            print(f"ℹ️ {user.email} is already verified")
            return
        user.email_verified = True
        user.verification_code = None
        user.verification_code_expires = None
        db.commit()
        track_user_event(db, user.id, UserEventType.EMAIL_VERIFIED, new_value="manual")
        print(f"✅ {user.username} ({user.email}) verified")
    finally:
        db.close()


if __name__ == "__main__":
    main()
