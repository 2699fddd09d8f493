"""Built-in chat commands.

Each module is one command. A module either defines ``command`` (a bare
coroutine function or an object with ``run``) or exposes ``run`` itself with
optional ``name``, ``aliases`` and ``description``.
"""
