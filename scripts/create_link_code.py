"""CLI helper for issuing a Telegram linking code to a Supabase user."""
import argparse
import os

from dotenv import load_dotenv

from tglink.db.links import PostgresLinkStore


def create(supabase_user_id: str, ttl_minutes: int) -> None:
    dsn = os.getenv("POSTGRES_DSN", "").strip()
    if not dsn:
        raise SystemExit("POSTGRES_DSN is not set.")
    store = PostgresLinkStore(dsn)
    store.ensure_tables()
    link_code = store.create_link_code(supabase_user_id, ttl_minutes=ttl_minutes)
    print(
        f"Link code {link_code.code} for {link_code.supabase_user_id} "
        f"(expires_at={link_code.expires_at.isoformat()})"
    )


if __name__ == "__main__":
    load_dotenv()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("supabase_user_id")
    parser.add_argument("--ttl-minutes", type=int, default=10)
    args = parser.parse_args()
    create(args.supabase_user_id, args.ttl_minutes)
