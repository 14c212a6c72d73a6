"""Routing — route templates, compiled path matching and outbound URIs.

Routes are registered during setup and compiled into an immutable
lookup structure when the app freezes.
"""
