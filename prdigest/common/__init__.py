"""Shared helpers for the GitLab and Slack clients."""
