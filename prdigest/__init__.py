"""Post digests of open GitLab merge requests to Slack channels."""
