import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.lucien.auth_store import get_user, hash_password, upsert_user
from app.lucien.constants import ENGAGEMENT_ALL, ROLE_OPERATOR
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the operator account from ADMIN_EMAIL / ADMIN_PASSWORD.
    Idempotent; an existing operator keeps its password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        print("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping operator seed.")
        return

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///lucien.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        existing = get_user(s, admin_email)
        upsert_user(
            s,
            email=admin_email,
            role=ROLE_OPERATOR,
            engagement_ids=[ENGAGEMENT_ALL],
            name="Operator",
            vis=ENGAGEMENT_ALL,
            password_hash=None if existing and existing.password_hash else hash_password(admin_password),
            status="active",
        )

    print("Initialized database (seed_only).")
    print(f"Operator email: {admin_email}")
    print("Operator password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
