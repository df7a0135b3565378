"""Tests for DocumentBuilder validation and body assembly."""

from __future__ import annotations

import pytest

from kubedeploy.builder import DocumentBuilder
from kubedeploy.errors import DocumentError


class TestBuild:
    def test_builds_namespaced_document(self) -> None:
        doc = (
            DocumentBuilder("ConfigMap", "agent-config")
            .namespace("monitoring")
            .labels(app="agent")
            .data({"config.json": "{}"})
            .build()
        )
        assert doc.id == "ConfigMap/monitoring/agent-config"
        assert doc.body["apiVersion"] == "v1"
        assert doc.body["metadata"]["labels"]["app"] == "agent"
        assert doc.body["data"]["config.json"] == "{}"

    def test_depends_on_accepts_documents_and_ids(self) -> None:
        ns = DocumentBuilder("Namespace", "monitoring").build()
        doc = (
            DocumentBuilder("ServiceAccount", "agent")
            .namespace("monitoring")
            .depends_on(ns, "ClusterRole/reader")
            .build()
        )
        assert doc.depends_on == frozenset({"Namespace/monitoring", "ClusterRole/reader"})

    def test_field_value_is_copied(self) -> None:
        rules = [{"verbs": ["get"]}]
        builder = DocumentBuilder("ClusterRole", "reader").field("rules", rules)
        rules[0]["verbs"].append("delete")
        assert builder.build().body["rules"][0]["verbs"] == ("get",)

    def test_from_manifest_round_trips_identity(self) -> None:
        manifest = {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": "web", "namespace": "apps", "labels": {"tier": "front"}},
            "spec": {"replicas": 3},
        }
        doc = DocumentBuilder.from_manifest(manifest).build()
        assert doc.key == ("Deployment", "apps", "web")
        assert doc.body["spec"]["replicas"] == 3
        assert doc.body["metadata"]["labels"]["tier"] == "front"

    def test_unknown_kind_with_explicit_api_version(self) -> None:
        doc = DocumentBuilder("ServiceMonitor", "web").namespace("apps").api_version("monitoring.coreos.com/v1").build()
        assert doc.api_version == "monitoring.coreos.com/v1"


class TestValidation:
    @pytest.mark.parametrize("name", ["", "UPPER", "-leading", "trailing-", "has_underscore", "x" * 254])
    def test_rejects_invalid_names(self, name: str) -> None:
        with pytest.raises(DocumentError):
            DocumentBuilder("ConfigMap", name).namespace("ns").build()

    def test_rejects_invalid_kind(self) -> None:
        with pytest.raises(DocumentError):
            DocumentBuilder("configmap", "cm").namespace("ns").build()

    def test_cluster_scoped_kind_rejects_namespace(self) -> None:
        with pytest.raises(DocumentError, match="cluster-scoped"):
            DocumentBuilder("ClusterRole", "reader").namespace("ns").build()

    def test_namespaced_kind_requires_namespace(self) -> None:
        with pytest.raises(DocumentError, match="requires a namespace"):
            DocumentBuilder("ServiceAccount", "sa").build()

    def test_rejects_invalid_namespace(self) -> None:
        with pytest.raises(DocumentError):
            DocumentBuilder("ConfigMap", "cm").namespace("Bad.Namespace").build()

    def test_unknown_kind_needs_api_version(self) -> None:
        with pytest.raises(DocumentError, match="apiVersion"):
            DocumentBuilder("ServiceMonitor", "web").namespace("apps").build()

    def test_reserved_fields_are_rejected(self) -> None:
        with pytest.raises(DocumentError):
            DocumentBuilder("ConfigMap", "cm").field("metadata", {})

    def test_from_manifest_requires_kind_and_name(self) -> None:
        with pytest.raises(DocumentError):
            DocumentBuilder.from_manifest({"kind": "ConfigMap", "metadata": {}})
