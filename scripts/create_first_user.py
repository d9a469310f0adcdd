import sys
import os
from sqlmodel import Session, select

# Add current directory to path
sys.path.append(os.getcwd())

from officedesk.db.session import get_engine, init_db
from officedesk.models.user import User, UserRole
from officedesk.core.security import get_password_hash


def create_initial_user():
    print("--- Initial Admin Creation ---")

    email = os.environ.get("FIRST_ADMIN_EMAIL", "admin@example.com")
    password = os.environ.get("FIRST_ADMIN_PASSWORD", "adminpassword")
    name = os.environ.get("FIRST_ADMIN_NAME", "Office Admin")

    init_db()
    with Session(get_engine()) as session:
        user = session.exec(select(User).where(User.email == email)).first()
        if user:
            print(f"User with email {email} already exists.")
            return

        print(f"Creating admin {email}...")
        session.add(User(
            email=email,
            name=name,
            password=get_password_hash(password),
            role=UserRole.ADMIN,
            can_approve_billing=True,
        ))
        session.commit()
        print("Initial admin created successfully!")
        print(f"Email: {email}")


if __name__ == "__main__":
    create_initial_user()
