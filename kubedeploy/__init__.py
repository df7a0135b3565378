"""kubedeploy: declarative multi-resource deployment orchestrator for Kubernetes."""

__version__ = "0.1.0"
