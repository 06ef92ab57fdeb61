"""
posprint - reliable raw printing to Windows receipt printers.

Multi-strategy print dispatch, driver classification, printer diagnostics
and print spooler recovery.
"""

__version__ = "1.0.0"
