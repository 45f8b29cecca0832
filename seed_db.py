import argparse
import random

from sqlalchemy.exc import SQLAlchemyError

from cafe_pos.config import settings
from cafe_pos.db import SessionLocal, init_db
from cafe_pos.logging import setup_json_logging
from cafe_pos.seed import reset_database, seed_demo


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Reset the cafe database and load demo data.")
    parser.add_argument("--reset-only", action="store_true", help="clear every table without seeding")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible demo data")
    args = parser.parse_args(argv)

    setup_json_logging()
    print(f"DATABASE_URL={settings.database_url}")
    db = SessionLocal()
    try:
        init_db()
        reset_database(db)
        if not args.reset_only:
            counts = seed_demo(db, random.Random(args.seed))
            print(f"seeded {counts}")
        db.commit()
        print("Seed OK")
    except SQLAlchemyError as exc:
        db.rollback()
        print("Seed FAILED")
        print(exc)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
