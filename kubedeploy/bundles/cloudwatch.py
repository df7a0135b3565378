"""CloudWatch Container Insights agent and Prometheus scraper for EKS.

Produces the full document set with explicit dependency edges:

- ServiceAccount and the three ConfigMaps depend on the Namespace.
- Each ClusterRoleBinding depends on its ClusterRole and the ServiceAccount.
- The agent DaemonSet depends on its ConfigMap, the ServiceAccount and its
  binding; the Prometheus Deployment likewise on its two ConfigMaps.

Manifest contents are opaque payload; only identities and edges matter to
the orchestrator.
"""

from __future__ import annotations

import json
from typing import Any

from kubedeploy.builder import DocumentBuilder
from kubedeploy.models.documents import ResourceDocument

_AGENT_IMAGE = "amazon/cloudwatch-agent:1.247345.36b249270"
_PROMETHEUS_IMAGE = "amazon/cloudwatch-agent:1.248913.0-prometheus"
_IRSA_ANNOTATION = "eks.amazonaws.com/role-arn"

_PROMETHEUS_SCRAPE_CONFIG = """\
global:
  scrape_interval: 1m
  scrape_timeout: 10s
scrape_configs:
- job_name: kubernetes-service-endpoints
  sample_limit: 10000
  kubernetes_sd_configs:
  - role: endpoints
  relabel_configs:
  - action: keep
    regex: true
    source_labels:
    - __meta_kubernetes_service_annotation_prometheus_io_scrape
  - action: replace
    source_labels:
    - __meta_kubernetes_namespace
    target_label: Namespace
  - action: replace
    source_labels:
    - __meta_kubernetes_service_name
    target_label: Service
"""


def _rule(api_groups: list[str], resources: list[str], verbs: list[str], **extra: Any) -> dict[str, Any]:
    return {"apiGroups": api_groups, "resources": resources, "verbs": verbs, **extra}


def _binding(name: str, role: ResourceDocument, account: ResourceDocument) -> ResourceDocument:
    return (
        DocumentBuilder("ClusterRoleBinding", name)
        .field(
            "subjects",
            [{"kind": "ServiceAccount", "name": account.name, "namespace": account.namespace}],
        )
        .field(
            "roleRef",
            {"kind": "ClusterRole", "name": role.name, "apiGroup": "rbac.authorization.k8s.io"},
        )
        .depends_on(role, account)
        .build()
    )


def _config_volume(name: str, mount_path: str) -> tuple[dict[str, Any], dict[str, Any]]:
    return {"name": name, "mountPath": mount_path}, {"name": name, "configMap": {"name": name}}


def _host_volume(name: str, host_path: str, mount_path: str) -> tuple[dict[str, Any], dict[str, Any]]:
    return (
        {"name": name, "mountPath": mount_path, "readOnly": True},
        {"name": name, "hostPath": {"path": host_path}},
    )


def _agent_daemonset(namespace: str, account: str, deps: list[ResourceDocument]) -> ResourceDocument:
    mounts_and_volumes = [
        _config_volume("cwagentconfig", "/etc/cwagentconfig"),
        _host_volume("rootfs", "/", "/rootfs"),
        _host_volume("dockersock", "/var/run/docker.sock", "/var/run/docker.sock"),
        _host_volume("varlibdocker", "/var/lib/docker", "/var/lib/docker"),
        _host_volume("sys", "/sys", "/sys"),
        _host_volume("devdisk", "/dev/disk/", "/dev/disk"),
    ]

    def _field_env(name: str, path: str) -> dict[str, Any]:
        return {"name": name, "valueFrom": {"fieldRef": {"fieldPath": path}}}

    container = {
        "name": "cloudwatch-agent",
        "image": _AGENT_IMAGE,
        "resources": {
            "limits": {"cpu": "200m", "memory": "200Mi"},
            "requests": {"cpu": "200m", "memory": "200Mi"},
        },
        "env": [
            _field_env("HOST_IP", "status.hostIP"),
            _field_env("HOST_NAME", "spec.nodeName"),
            _field_env("K8S_NAMESPACE", "metadata.namespace"),
            {"name": "CI_VERSION", "value": "k8s/1.2.2"},
        ],
        "volumeMounts": [mount for mount, _ in mounts_and_volumes],
    }
    return (
        DocumentBuilder("DaemonSet", "cloudwatch-agent")
        .namespace(namespace)
        .spec(
            {
                "selector": {"matchLabels": {"name": "cloudwatch-agent"}},
                "template": {
                    "metadata": {"labels": {"name": "cloudwatch-agent"}},
                    "spec": {
                        "containers": [container],
                        "volumes": [volume for _, volume in mounts_and_volumes],
                        "terminationGracePeriodSeconds": 60,
                        "serviceAccountName": account,
                    },
                },
            }
        )
        .depends_on(*deps)
        .build()
    )


def _prometheus_deployment(namespace: str, account: str, deps: list[ResourceDocument]) -> ResourceDocument:
    mounts_and_volumes = [
        _config_volume("prometheus-cwagentconfig", "/etc/cwagentconfig"),
        _config_volume("prometheus-config", "/etc/prometheusconfig"),
    ]
    container = {
        "name": "cloudwatch-agent",
        "image": _PROMETHEUS_IMAGE,
        "imagePullPolicy": "Always",
        "resources": {
            "limits": {"cpu": "1000m", "memory": "1000Mi"},
            "requests": {"cpu": "200m", "memory": "200Mi"},
        },
        "env": [{"name": "CI_VERSION", "value": "k8s/1.2.1-prometheus"}],
        "volumeMounts": [mount for mount, _ in mounts_and_volumes],
    }
    return (
        DocumentBuilder("Deployment", "cwagent-prometheus")
        .namespace(namespace)
        .spec(
            {
                "replicas": 1,
                "selector": {"matchLabels": {"app": "cwagent-prometheus"}},
                "template": {
                    "metadata": {"labels": {"app": "cwagent-prometheus"}},
                    "spec": {
                        "containers": [container],
                        "volumes": [volume for _, volume in mounts_and_volumes],
                        "terminationGracePeriodSeconds": 60,
                        "serviceAccountName": account,
                    },
                },
            }
        )
        .depends_on(*deps)
        .build()
    )


def cloudwatch_agent_documents(
    cluster_name: str,
    namespace: str = "amazon-cloudwatch",
    service_account: str = "cloudwatch-agent",
    role_arn: str = "",
) -> list[ResourceDocument]:
    """Build the CloudWatch agent and Prometheus scraper documents.

    Args:
        cluster_name:    Name reported to CloudWatch in agent metrics.
        namespace:       Namespace for every namespaced object.
        service_account: Service account shared by both agents.
        role_arn:        Optional IAM role for service accounts (IRSA); the
                         role itself is provisioned outside kubedeploy.
    """
    ns = DocumentBuilder("Namespace", namespace).build()

    account_builder = DocumentBuilder("ServiceAccount", service_account).namespace(namespace).depends_on(ns)
    if role_arn:
        account_builder.annotations(**{_IRSA_ANNOTATION: role_arn})
    account = account_builder.build()

    agent_role = (
        DocumentBuilder("ClusterRole", "cloudwatch-agent-role")
        .field(
            "rules",
            [
                _rule([""], ["pods", "nodes", "endpoints"], ["list", "watch"]),
                _rule(["apps"], ["replicasets"], ["list", "watch"]),
                _rule(["batch"], ["jobs"], ["list", "watch"]),
                _rule([""], ["nodes/proxy"], ["get"]),
                _rule([""], ["nodes/stats", "configmaps", "events"], ["create"]),
                _rule([""], ["configmaps"], ["get", "update"], resourceNames=["cwagent-clusterleader"]),
            ],
        )
        .build()
    )
    prometheus_role = (
        DocumentBuilder("ClusterRole", "cwagent-prometheus-role")
        .field(
            "rules",
            [
                _rule([""], ["nodes", "nodes/proxy", "services", "endpoints", "pods"], ["get", "list", "watch"]),
                _rule(["extensions"], ["ingresses"], ["get", "list", "watch"]),
                {"nonResourceURLs": ["/metrics"], "verbs": ["get"]},
            ],
        )
        .build()
    )
    agent_binding = _binding("cloudwatch-agent-role-binding", agent_role, account)
    prometheus_binding = _binding("cwagent-prometheus-role-binding", prometheus_role, account)

    agent_config = (
        DocumentBuilder("ConfigMap", "cwagentconfig")
        .namespace(namespace)
        .data(
            {
                "cwagentconfig.json": json.dumps(
                    {
                        "logs": {
                            "metrics_collected": {
                                "kubernetes": {
                                    "cluster_name": cluster_name,
                                    "metrics_collection_interval": 60,
                                }
                            },
                            "force_flush_interval": 5,
                        }
                    }
                )
            }
        )
        .depends_on(ns)
        .build()
    )
    prometheus_agent_config = (
        DocumentBuilder("ConfigMap", "prometheus-cwagentconfig")
        .namespace(namespace)
        .data(
            {
                "cwagentconfig.json": json.dumps(
                    {
                        "logs": {
                            "metrics_collected": {
                                "prometheus": {
                                    "cluster_name": cluster_name,
                                    "prometheus_config_path": "/etc/prometheusconfig/prometheus.yaml",
                                    "emf_processor": {"metric_declaration_dedup": True, "metric_declaration": []},
                                }
                            },
                            "force_flush_interval": 5,
                        }
                    }
                )
            }
        )
        .depends_on(ns)
        .build()
    )
    scrape_config = (
        DocumentBuilder("ConfigMap", "prometheus-config")
        .namespace(namespace)
        .data({"prometheus.yaml": _PROMETHEUS_SCRAPE_CONFIG})
        .depends_on(ns)
        .build()
    )

    daemonset = _agent_daemonset(namespace, account.name, [agent_config, account, agent_binding])
    deployment = _prometheus_deployment(
        namespace,
        account.name,
        [prometheus_agent_config, scrape_config, account, prometheus_binding],
    )

    return [
        ns,
        account,
        agent_role,
        prometheus_role,
        agent_binding,
        prometheus_binding,
        agent_config,
        prometheus_agent_config,
        scrape_config,
        daemonset,
        deployment,
    ]
