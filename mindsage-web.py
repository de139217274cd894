#!/usr/bin/env python3
"""
MindSage — web API

Starts a local HTTP API over the session manager, for browser front ends.
This is an alternative to the CLI (mindsage.py). Both share the same stored
identity and session lifecycle.

Usage:
    python mindsage-web.py [--port 8000] [--host 127.0.0.1] [--log-level info]
"""

from web.__main__ import main

if __name__ == "__main__":
    main()
