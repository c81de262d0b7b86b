"""
Core package for configuration, logging, security headers and exceptions.

This module makes the core directory a Python package, enabling proper
import resolution for the utilities shared by the middleware, services and
the application assembler.
"""
