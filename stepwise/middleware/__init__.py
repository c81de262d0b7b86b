"""
Middleware collaborators wired in by the assembler.

Each module contributes one concern: security headers live in
``stepwise.core.security``; request logging, static assets, view settings,
sessions, the user middleware registry, the cookie check and the error
handlers live here.
"""
