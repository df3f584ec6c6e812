"""Adapters that connect the core to Telegram and SQLite."""
