"""Workflow matching, condition evaluation and execution."""
