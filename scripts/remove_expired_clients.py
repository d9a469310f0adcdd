import sys
import os
from sqlmodel import Session

# Add current directory to path
sys.path.append(os.getcwd())

from officedesk.core.logging import setup_logging
from officedesk.db.session import get_engine, init_db
from officedesk.services.client_history import remove_expired_guest_clients


def remove_expired_clients():
    print("--- Expired Guest Client Cleanup ---")

    setup_logging()
    init_db()
    with Session(get_engine()) as session:
        results = remove_expired_guest_clients(session)

    for result in results:
        print(f"Removed {result['name']} (expired {result['expiredOn']})")
    print(f"Deleted {len(results)} expired guest clients.")


if __name__ == "__main__":
    remove_expired_clients()
