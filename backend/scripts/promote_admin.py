# promote_admin.py
# Usage: python scripts/promote_admin.py someone@example.com
# Run with DATABASE_URL pointing at the target database.

import sys

from sqlmodel import Session, select

from settleup.db.session import engine
from settleup.models.user import User, UserRole

if len(sys.argv) < 2:
    raise SystemExit("Usage: python scripts/promote_admin.py <email>")

email = sys.argv[1].strip().lower()

with Session(engine) as s:
    user = s.exec(select(User).where(User.email == email)).first()
    if user is None:
        raise SystemExit(f"No user registered with {email}")
    user.role = UserRole.ADMIN.value
    s.add(user)
    s.commit()
    print(f"{user.email} is now {user.role}")
