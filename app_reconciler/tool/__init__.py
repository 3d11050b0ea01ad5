"""Command line tool for app-reconciler."""
