"""Tests for task-conductor."""
