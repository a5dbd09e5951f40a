#!/usr/bin/env python3
"""
Entry point script for running Laundry Watchdog directly from a checkout.
"""

import sys

from laundry_watchdog.main import main

if __name__ == "__main__":
    sys.exit(main())
