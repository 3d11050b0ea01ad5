"""Tests for the app-reconciler command line tool."""
