"""Pre-built document sets."""

from kubedeploy.bundles.cloudwatch import cloudwatch_agent_documents

__all__ = ["cloudwatch_agent_documents"]
