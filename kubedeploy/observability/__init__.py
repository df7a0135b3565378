"""Logging and metrics for kubedeploy."""
