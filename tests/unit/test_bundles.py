"""Tests for the CloudWatch agent document bundle."""

from __future__ import annotations

import json

from kubedeploy.bundles import cloudwatch_agent_documents
from kubedeploy.graph import build_graph


def _by_id(documents):  # type: ignore[no-untyped-def]
    return {doc.id: doc for doc in documents}


class TestCloudWatchBundle:
    def test_documents_form_a_valid_graph(self) -> None:
        graph = build_graph(cloudwatch_agent_documents("prod"))
        assert graph.node_count == 11
        assert graph.external == frozenset()
        assert set(graph.waves()[0]) == {
            "Namespace/amazon-cloudwatch",
            "ClusterRole/cloudwatch-agent-role",
            "ClusterRole/cwagent-prometheus-role",
        }
        assert graph.order[-2:] == [
            "DaemonSet/amazon-cloudwatch/cloudwatch-agent",
            "Deployment/amazon-cloudwatch/cwagent-prometheus",
        ]

    def test_workloads_wait_for_config_and_rbac(self) -> None:
        docs = _by_id(cloudwatch_agent_documents("prod"))
        daemonset = docs["DaemonSet/amazon-cloudwatch/cloudwatch-agent"]
        assert daemonset.depends_on == {
            "ConfigMap/amazon-cloudwatch/cwagentconfig",
            "ServiceAccount/amazon-cloudwatch/cloudwatch-agent",
            "ClusterRoleBinding/cloudwatch-agent-role-binding",
        }
        deployment = docs["Deployment/amazon-cloudwatch/cwagent-prometheus"]
        assert "ConfigMap/amazon-cloudwatch/prometheus-config" in deployment.depends_on
        assert "ClusterRoleBinding/cwagent-prometheus-role-binding" in deployment.depends_on

    def test_bindings_depend_on_role_and_account(self) -> None:
        docs = _by_id(cloudwatch_agent_documents("prod"))
        binding = docs["ClusterRoleBinding/cloudwatch-agent-role-binding"]
        assert binding.depends_on == {
            "ClusterRole/cloudwatch-agent-role",
            "ServiceAccount/amazon-cloudwatch/cloudwatch-agent",
        }
        assert binding.body["subjects"][0]["namespace"] == "amazon-cloudwatch"

    def test_cluster_name_in_agent_config(self) -> None:
        docs = _by_id(cloudwatch_agent_documents("prod-eu"))
        raw = docs["ConfigMap/amazon-cloudwatch/cwagentconfig"].body["data"]["cwagentconfig.json"]
        assert json.loads(raw)["logs"]["metrics_collected"]["kubernetes"]["cluster_name"] == "prod-eu"

    def test_custom_namespace_and_role_arn(self) -> None:
        docs = _by_id(
            cloudwatch_agent_documents(
                "prod",
                namespace="observability",
                role_arn="arn:aws:iam::123456789012:role/cwagent",
            )
        )
        account = docs["ServiceAccount/observability/cloudwatch-agent"]
        annotations = account.to_manifest()["metadata"]["annotations"]
        assert "arn:aws:iam::123456789012:role/cwagent" in annotations.values()
        assert "Namespace/observability" in docs
