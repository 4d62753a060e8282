"""
Purview configuration export.
Reads sensitivity labels, label policies, auto-labeling and DLP configuration
from Security & Compliance PowerShell and writes JSON, CSV and report files.
"""

__version__ = "0.1.0"
