#!/usr/bin/env python3
"""Re-run plan grants for payments whose signature was verified but whose grant failed."""
import argparse
import asyncio
import logging

from thumbcraft.core.database import BillingSessionLocal, billing_engine, init_models
from thumbcraft.core.errors import AppError
from thumbcraft.services.payment_service import list_unreconciled, reconcile_payment

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("thumbcraft.reconcile")


async def run(order_ids, dry_run: bool) -> int:
    await init_models(billing_engine)
    failures = 0

    async with BillingSessionLocal() as db:
        if not order_ids:
            pending = await list_unreconciled(db)
            order_ids = [p.provider_order_id for p in pending]
        logger.info("%s order(s) to reconcile", len(order_ids))

        for order_id in order_ids:
            if dry_run:
                print(f"would reconcile {order_id}")
                continue
            try:
                result = await reconcile_payment(db, order_id)
            except AppError as exc:
                failures += 1
                logger.error("%s: %s (%s)", order_id, exc.message, exc.code)
                continue
            state = "already processed" if result.already_processed else "granted"
            print(f"{order_id}: {state} {result.plan_type} until {result.plan_expiry}")

    await billing_engine.dispose()
    return 1 if failures else 0


def main() -> int:
    ap = argparse.ArgumentParser(description="Reconcile verified-but-ungranted Razorpay payments")
    ap.add_argument("order_ids", nargs="*", help="provider order ids (default: every unreconciled order)")
    ap.add_argument("--dry-run", action="store_true", help="list orders without granting")
    args = ap.parse_args()
    return asyncio.run(run(list(args.order_ids), args.dry_run))


if __name__ == "__main__":
    raise SystemExit(main())
