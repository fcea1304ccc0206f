import argparse

from homecare.config import get_settings
from homecare.database import init_db, session_scope
from homecare.logging_config import configure_logging
from homecare.services.demo_data import seed_demo_data


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the database with synthetic homecare data")
    parser.add_argument("--seed", type=int, default=None, help="random seed for reproducible data")
    args = parser.parse_args()

    configure_logging(get_settings())
    init_db()
    with session_scope() as db:
        counts = seed_demo_data(db, seed=args.seed)
    print(f"Seeded {counts}")


if __name__ == "__main__":
    main()
