"""
Staff Editor - Main Package.

Single-session editor for the SK Sri Aman staff sheet:
- Core framework (config, logging, HTTP client lifecycle)
- Sheet layer (column layout, CSV codec, Apps Script client)
- Session controller (login, edit, save, discard, logout)
- JSON HTTP API and CSV export
"""

__version__ = "1.0.0"
