"""
PRT - GitHub PR Tracker.

A CLI tool that:
1. Discovers local Git repositories with GitHub remotes
2. Fetches their open PRs concurrently through the gh CLI
3. Detects stacked PRs and which of them are blocked
4. Groups PRs by your relationship to them

Usage:
    prt init          # Write a starter ~/.prt/config.yaml
    prt scan          # Scan repositories and show open PRs
    prt config show   # Show the effective configuration
"""

__version__ = "0.1.0"
__author__ = "PRT"
