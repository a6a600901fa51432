"""Shared helpers: stores, ledger maths, permissions, reports and exports."""
