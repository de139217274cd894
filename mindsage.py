#!/usr/bin/env python3
"""
MindSage — command-line client

Restores the stored identity, talks to the MindSage service and prints the
outcome of one operation.

Usage:
    python mindsage.py login --principal <principal> --token <delegation>
    python mindsage.py register alice
    python mindsage.py start CBT 7

This file is a thin wrapper around the cli package.
For the modular implementation, see the mindsage_platform/, cli/, and web/ directories.
"""

import asyncio
from cli.commands import main

if __name__ == "__main__":
    asyncio.run(main())
