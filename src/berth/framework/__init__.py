"""Berth framework -- application-level plumbing shared by the engine and CLI."""
