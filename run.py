#!/usr/bin/env python3
"""termsense - Run the activity detection service.

Usage:
    python run.py
    # Or: python -m termsense.app

The hook endpoint will be available at http://127.0.0.1:52429/hook
"""

from termsense.app import main

if __name__ == "__main__":
    main()
