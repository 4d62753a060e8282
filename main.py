"""
Main entry point for the Purview configuration export.
Connects to Security & Compliance PowerShell, exports label and DLP
configuration and writes the requested report files.
"""

import sys

from purview_export.cli import main

if __name__ == '__main__':
    sys.exit(main())
