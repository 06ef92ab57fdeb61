"""Shared utilities: errors, logging, timing, settings, retry and the PowerShell layer."""
