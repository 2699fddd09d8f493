"""Core domain package for parley.

Core contains command routing, the command registry and the connection
supervisor without any Telegram or storage-specific code, keeping the
gateway logic testable with fake collaborators.
"""
