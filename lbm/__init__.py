"""LXD Backup Manager: back up running instances from remote LXD endpoints."""
