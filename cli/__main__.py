"""
Entry point for running the MindSage CLI as a module.

Usage:
    python -m cli status
    python -m cli login --principal <principal> --token <delegation>
    python -m cli start CBT 7
    python -m cli end <session-id> 25 4 --pitch 180 --tempo 120
"""

import asyncio
from .commands import main

if __name__ == "__main__":
    asyncio.run(main())
