from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.errors import UserNotFoundError
from phone_field_bonus.core.logging import configure_logging
from phone_field_bonus.services import diagnostics
from phone_field_bonus.services.phone_bonus_runtime import phone_bonus_runtime


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Phone field bonus operator tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    recheck_user = subparsers.add_parser("recheck-user", help="Run the award check for one user")
    recheck_user.add_argument("user_id", type=int)

    recheck_all = subparsers.add_parser("recheck-all", help="Recheck every un-awarded user")
    recheck_all.add_argument("--batch-size", type=int)
    recheck_all.add_argument("--batch-delay-seconds", type=float)
    recheck_all.add_argument("--max-batches", type=int)

    diagnose = subparsers.add_parser("diagnose", help="Show phone bonus state for one user")
    diagnose.add_argument("user_id", type=int)

    rate_limit = subparsers.add_parser("rate-limit", help="Show rate limit state for one user")
    rate_limit.add_argument("user_id", type=int)

    clear = subparsers.add_parser("clear-rate-limits", help="Clear rate limits")
    clear.add_argument("--user-id", type=int)

    subparsers.add_parser("health", help="Show lock, limit and cache counts")

    stats = subparsers.add_parser("stats", help="Show per-day job statistics")
    stats.add_argument("--days", type=int, default=7)

    cleanup = subparsers.add_parser("cleanup-stats", help="Delete statistics past retention")
    cleanup.add_argument("--days-to-keep", type=int)
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace, *, runtime_factory=phone_bonus_runtime) -> object:
    async with runtime_factory() as runtime:
        if args.command == "recheck-user":
            result = await diagnostics.recheck_user(runtime, user_id=args.user_id)
            return {"user_id": args.user_id, "status": result.status, "backend": result.backend}
        if args.command == "recheck-all":
            return await diagnostics.recheck_all_users(
                runtime,
                batch_size=args.batch_size,
                batch_delay_seconds=args.batch_delay_seconds,
                max_batches=args.max_batches,
            )
        if args.command == "diagnose":
            return await diagnostics.diagnose_user(runtime, user_id=args.user_id)
        if args.command == "rate-limit":
            return await diagnostics.rate_limit_state(runtime, user_id=args.user_id)
        if args.command == "clear-rate-limits":
            return {"deleted_keys": await diagnostics.clear_rate_limits(runtime, user_id=args.user_id)}
        if args.command == "health":
            return await diagnostics.health_summary(runtime)
        if args.command == "stats":
            end = datetime.now(timezone.utc).date()
            start = end - timedelta(days=max(1, args.days) - 1)
            return await runtime.stats.get_range(start, end)
        if args.command == "cleanup-stats":
            return {"deleted_keys": await runtime.stats.cleanup_old(args.days_to_keep)}
    raise ValueError(f"unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging(get_settings().log_level, component="cli")
    args = _parse_args(argv)
    try:
        result = asyncio.run(_run(args))
    except UserNotFoundError as exc:
        print(json.dumps({"error": "user_not_found", "user_id": exc.user_id}))  # noqa: T201
        return 1
    print(json.dumps(result, ensure_ascii=False, indent=2, default=str))  # noqa: T201
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
