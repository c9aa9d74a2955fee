import argparse
import logging
import sys

from policy import PolicyError

from .config import get_settings
from .randomness import make_random_source
from .seed import seed_storage
from .service import InMemoryStorage, LedgerService, LedgerServiceError

logger = logging.getLogger("loyalty")


def main(argv=None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Generate and reconcile loyalty-points ledgers")
    parser.add_argument("--customers", type=int, default=settings.seed_customer_count,
                        help="Number of demo customers to seed")
    parser.add_argument("--workers", type=int, default=settings.max_workers,
                        help="Customers processed concurrently")
    parser.add_argument("--seed", type=int, default=settings.random_seed,
                        help="Random seed for reproducible runs")
    parser.add_argument("--policy", default=settings.policy_file,
                        help="JSON file overriding the generation policy")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        policy = settings.model_copy(update={"policy_file": args.policy}).load_policy()
    except PolicyError as e:
        logger.error("Invalid generation policy: %s", e)
        return 2

    storage = InMemoryStorage(seed=False)
    seed_storage(storage, args.customers, make_random_source(args.seed))

    service = LedgerService(storage=storage, policy=policy, random_seed=args.seed)
    try:
        report = service.run_batch(max_workers=args.workers)
    except LedgerServiceError as e:
        logger.error("Ledger batch aborted: %s", e)
        return 1

    print(report.model_dump_json(indent=2))
    return 1 if report.customers_failed else 0


if __name__ == "__main__":
    sys.exit(main())
