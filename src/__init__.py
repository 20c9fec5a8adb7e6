"""Lesson engine source packages."""
