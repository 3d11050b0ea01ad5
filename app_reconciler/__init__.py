"""
app-reconciler converges declared applications into a cluster.

An Application names what a team wants to run and an Environment says how the
cluster provides services to it. The Reconciler runs a sequence of providers
that stage the desired objects in a typed ObjectCache and fill the sections of
the AppConfig handed to the application, then commits the cache to the
backing store.
"""

__all__ = [
    "application",
    "appconfig",
    "cache",
    "client",
    "exceptions",
    "manifest",
    "providers",
    "reconciler",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
