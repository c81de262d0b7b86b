"""Collaborators wired in by the assembler: themes, translations and steps."""
