"""Telegram delivery, inbound commands and message texts."""
