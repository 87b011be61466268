"""Routing — path templates matched against link path segments.

Templates are parsed once when a plugin is created and matched per link.
"""
