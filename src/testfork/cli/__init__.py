#
# src/testfork/cli/__init__.py
#
"""
Command line interface for testfork.
"""
