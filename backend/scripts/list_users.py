from sqlmodel import Session, select

from settleup.db.session import engine
from settleup.models.user import User

with Session(engine) as s:
    users = s.exec(select(User).order_by(User.created_at)).all()
    for u in users:
        print(f"ID: {u.id} | Email: {u.email} | Role: {u.role} | Active: {u.is_active}")
