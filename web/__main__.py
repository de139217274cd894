"""
Serve the MindSage session API over HTTP.

Usage:
    python -m web [--port 8000] [--host 127.0.0.1] [--log-level info] [--reload]

Endpoint class, service id and timeouts come from the MINDSAGE_* environment
variables (see mindsage_platform.config).
"""

import argparse
import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mindsage-web",
        description="Serve the MindSage session API (login, profile, therapy sessions, reports)",
    )
    parser.add_argument("--port", type=int, default=8000, help="API port (default: 8000)")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Server log level (default: info)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Restart the API when source files change"
    )
    return parser


def main():
    args = build_parser().parse_args()

    base = f"http://{args.host}:{args.port}/api"
    print(f"\n  MindSage session API at {base}")
    print(f"  Session state: GET {base}/session\n")

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
