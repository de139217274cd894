"""
CLI subcommand implementations for MindSage.

Subcommands::

    mindsage status
    mindsage login    --principal P --token T [--expires-at ISO]
    mindsage logout
    mindsage register NAME
    mindsage sessions
    mindsage report
    mindsage start    TYPE STRESS_BEFORE
    mindsage end      ID DURATION STRESS_AFTER [--notes N] [--pitch P] [--tempo T]
    mindsage reflect  THOUGHT
    mindsage stats

Every command restores the persisted identity first, so a ``login`` in one
invocation carries over to the next.
"""

import argparse
import logging
import sys
from datetime import datetime

from dotenv import load_dotenv

from mindsage_platform import Credential, FileIdentityClient, SessionManager, load_config


def _print_failure(result: dict):
    print(f"Error: {result.get('error', 'unknown error')}")


def _print_profile(profile):
    print(f"  Username:       {profile.username}")
    print(f"  Principal:      {profile.principal_id}")
    print(f"  Sessions:       {profile.total_sessions}")


def _print_sessions(sessions: list):
    if not sessions:
        print("No therapy sessions yet.")
        return
    print(f"\n{'ID':<24}  {'Type':<12}  {'Minutes':>7}  {'Stress':>11}  {'Emotion'}")
    print("-" * 75)
    for s in sessions:
        stress = f"{s.stress_before:g} → {s.stress_after:g}"
        print(
            f"{s.id:<24}  {s.session_type:<12}  {s.duration_minutes:>7}  "
            f"{stress:>11}  {s.voice_metrics.emotion}"
        )


def _print_report(report):
    print(f"\nProgress report ({report.total_sessions} session(s))")
    print(f"  Trend:                  {report.trend}")
    print(f"  Avg. stress reduction:  {report.avg_stress_reduction:.2f}")
    if report.recommendations:
        print("  Recommendations:")
        for rec in report.recommendations:
            print(f"    - {rec}")


def _finish(result: dict) -> int:
    if not result.get("success"):
        _print_failure(result)
        return 1
    return 0


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

async def cmd_status(manager: SessionManager, args) -> int:
    snapshot = manager.snapshot()
    if not snapshot["is_authenticated"]:
        print("Not logged in.")
        return 0
    print(f"Logged in as {snapshot['principal_id']}")
    print(f"  State:          {snapshot['lifecycle']}")
    print(f"  Service:        {'available' if snapshot['actor_available'] else 'unavailable'}")
    print(f"  Channel:        {'verified' if snapshot['channel_verified'] else 'UNVERIFIED'}")
    if manager.user_profile is not None:
        _print_profile(manager.user_profile)
    else:
        print("  Profile:        not registered (run `register NAME`)")
    return 0


async def cmd_login(manager: SessionManager, args) -> int:
    credential = Credential(
        principal_id=args.principal,
        token=args.token,
        expires_at=datetime.fromisoformat(args.expires_at) if args.expires_at else None,
    )
    if not await manager.login(credential):
        print("Login failed.")
        return 1
    print(f"Logged in as {manager.state.principal_id}")
    return 0


async def cmd_logout(manager: SessionManager, args) -> int:
    await manager.logout()
    print("Logged out.")
    return 0


async def cmd_register(manager: SessionManager, args) -> int:
    result = await manager.register_user(args.name)
    if result.get("success"):
        print("Registered.")
        _print_profile(result["profile"])
    return _finish(result)


async def cmd_sessions(manager: SessionManager, args) -> int:
    result = await manager.get_user_sessions()
    if result.get("success"):
        _print_sessions(result["sessions"])
    return _finish(result)


async def cmd_report(manager: SessionManager, args) -> int:
    result = await manager.generate_progress_report()
    if result.get("success"):
        _print_report(result["report"])
    return _finish(result)


async def cmd_start(manager: SessionManager, args) -> int:
    result = await manager.start_therapy_session(args.session_type, args.stress_before)
    if result.get("success"):
        print(f"Started session {result['session_id']}")
    return _finish(result)


async def cmd_end(manager: SessionManager, args) -> int:
    result = await manager.end_therapy_session(
        args.session_id,
        args.duration,
        args.stress_after,
        args.notes,
        args.pitch,
        args.tempo,
    )
    if result.get("success"):
        session = result["session"]
        print(f"Ended session {session.id}: voice analysis says {session.voice_metrics.emotion}")
    return _finish(result)


async def cmd_reflect(manager: SessionManager, args) -> int:
    result = await manager.get_cbt_reflection(args.thought)
    if result.get("success"):
        print(result["reflection"])
    return _finish(result)


async def cmd_stats(manager: SessionManager, args) -> int:
    result = await manager.get_service_stats()
    if result.get("success"):
        stats = result["stats"]
        print(f"Users: {stats.total_users}  Sessions: {stats.total_sessions}")
    return _finish(result)


COMMANDS = {
    "status": cmd_status,
    "login": cmd_login,
    "logout": cmd_logout,
    "register": cmd_register,
    "sessions": cmd_sessions,
    "report": cmd_report,
    "start": cmd_start,
    "end": cmd_end,
    "reflect": cmd_reflect,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="mindsage",
        description="MindSage session client",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log lifecycle details to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show the current session")

    p_login = subparsers.add_parser("login", help="Log in with a delegation from the identity provider")
    p_login.add_argument("--principal", required=True, help="Principal id of the delegation")
    p_login.add_argument("--token", required=True, help="Delegation token")
    p_login.add_argument("--expires-at", help="Delegation expiry (ISO 8601)")

    subparsers.add_parser("logout", help="Log out and forget the stored identity")

    p_register = subparsers.add_parser("register", help="Register a profile")
    p_register.add_argument("name", help="Username")

    subparsers.add_parser("sessions", help="List therapy sessions")
    subparsers.add_parser("report", help="Generate a progress report")

    p_start = subparsers.add_parser("start", help="Start a therapy session")
    p_start.add_argument("session_type", help="Session type (e.g. CBT)")
    p_start.add_argument("stress_before", type=float, help="Stress level before (0-10)")

    p_end = subparsers.add_parser("end", help="End a therapy session")
    p_end.add_argument("session_id")
    p_end.add_argument("duration", type=int, help="Duration in minutes")
    p_end.add_argument("stress_after", type=float, help="Stress level after (0-10)")
    p_end.add_argument("--notes", default="")
    p_end.add_argument("--pitch", type=float, default=0.0, help="Average voice pitch (Hz)")
    p_end.add_argument("--tempo", type=float, default=0.0, help="Speech tempo (words/min)")

    p_reflect = subparsers.add_parser("reflect", help="Get a CBT reflection on a thought")
    p_reflect.add_argument("thought")

    subparsers.add_parser("stats", help="Show service-wide totals")

    return parser


def build_session_manager() -> SessionManager:
    load_dotenv()
    return SessionManager(identity_client=FileIdentityClient(), config=load_config())


async def run(args, manager: SessionManager) -> int:
    """Restore the session and run one subcommand; returns the exit code."""
    await manager.initialize()
    return await COMMANDS[args.command](manager, args)


async def main():
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        manager = build_session_manager()
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    sys.exit(await run(args, manager))
