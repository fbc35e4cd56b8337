"""
List users with their tier, verification status and usage this month.

  python check_users.py            # all users
  python check_users.py jamie      # username or email containing "jamie"
"""
import sys
import os

# Add the parent directory to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from sqlalchemy import func, or_

from app.db.session import SessionLocal
from app.models import User
from app.services.usage_tracker import get_user_usage


def main():
    search = sys.argv[1].lower() if len(sys.argv) > 1 else None
    db = SessionLocal()
    try:
        query = db.query(User)
        if search:
            query = query.filter(or_(
                func.lower(User.username).contains(search),
                func.lower(User.email).contains(search),
            ))
        users = query.order_by(User.id).all()

        if users:
            print("Users found:")
            for user in users:
                usage = get_user_usage(user, db)
                limit = "unlimited" if usage["limit"] is None else usage["limit"]
                print(
                    f"  ID: {user.id}, Username: {user.username}, Email: {user.email}, "
                    f"Tier: {user.tier}, Verified: {user.email_verified}, Admin: {user.is_admin}, "
                    f"Usage: {usage['used']}/{limit}, Created: {user.created_at}"
                )
        else:
            print(f"No users found matching '{search}'" if search else "No users found")

        total = db.query(func.count(User.id)).scalar()
        print(f"\nTotal users in database: {total}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
