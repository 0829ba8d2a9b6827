"""Backup storage accounting and deletion planning."""
