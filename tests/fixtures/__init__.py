"""Test fixtures for sage-wm."""
