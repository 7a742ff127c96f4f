#!/usr/bin/env python3
"""Live check of state sync and access gating against a real backend.

Configuration comes from ``MEDTRIP_*`` environment variables (see
``MedTripConfig.from_env``) plus:

- MEDTRIP_USER_ID: id of the signed-in user
- MEDTRIP_ACCESS_TOKEN: access token issued for that user

Steps:
1) sign in and fetch the profile,
2) resolve roles and gate a few paths,
3) open a planner state, write it, wait past the debounce window,
4) read it back straight from the remote store.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pymedtrip import AuthUser, MedTripClient, MedTripConfig, MedTripError, RoleName  # noqa: E402


@dataclass(frozen=True)
class ProbeResult:
    name: str
    ok: bool
    detail: str


def _print_results(results: list[ProbeResult]) -> None:
    width = max((len(result.name) for result in results), default=20)
    print("\nProbe report")
    print("-" * (width + 24))
    for result in results:
        status = "OK" if result.ok else "FAIL"
        print(f"{result.name:<{width}}  {status:<4}  {result.detail}")

    failures = [result for result in results if not result.ok]
    print("-" * (width + 24))
    print(f"Summary: {len(results) - len(failures)} OK, {len(failures)} FAIL")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe pymedtrip against a live backend")
    parser.add_argument("--booking", required=True, help="Booking id used as the state scope.")
    parser.add_argument("--state-key", default="probe", help="State key to write (default: probe).")
    parser.add_argument(
        "--path",
        action="append",
        default=None,
        help="Path to gate; repeatable. Defaults to /dashboard, /provider/onboarding and /admin.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging with redacted traces.")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    try:
        config = MedTripConfig.from_env(api_trace_enabled=args.verbose)
    except MedTripError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    user_id = os.environ.get("MEDTRIP_USER_ID", "").strip()
    token = os.environ.get("MEDTRIP_ACCESS_TOKEN", "").strip()
    if not user_id or not token:
        print("MEDTRIP_USER_ID and MEDTRIP_ACCESS_TOKEN are required", file=sys.stderr)
        return 2

    results: list[ProbeResult] = []
    paths = args.path or ["/dashboard", config.onboarding_path, "/admin"]
    marker = {"probe": True, "written_at": int(time.time())}

    async with MedTripClient(config) as client:
        session = await client.sign_in(AuthUser(id=user_id), token)
        profile = session.identity.profile
        results.append(
            ProbeResult(
                "profile",
                profile is not None,
                "missing" if profile is None else f"provider={profile.is_provider} onboarded={profile.onboarding_complete}",
            )
        )

        for role in RoleName:
            results.append(ProbeResult(f"role.{role.value}", True, str(await client.has_role(role))))

        for path in paths:
            decision = await client.check_access(path, require_admin=path == "/admin")
            detail = decision.outcome.value if decision.target is None else f"{decision.outcome.value} -> {decision.target}"
            results.append(ProbeResult(f"gate {path}", True, detail))

        state = client.open_state(args.booking, args.state_key, {})
        await state.wait_loaded()
        results.append(ProbeResult("state.load", True, json.dumps(state.value)[:60]))
        state.set(marker)
        await asyncio.sleep(config.debounce_seconds + 1.0)

        read_back = await client.remote.read(user_id, args.booking, args.state_key)
        results.append(ProbeResult("state.roundtrip", read_back == marker, json.dumps(read_back)[:60]))

    _print_results(results)
    return 0 if all(result.ok for result in results) else 1


def main() -> int:
    args = _parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
