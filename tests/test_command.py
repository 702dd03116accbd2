"""Tests for assembling helm invocations."""

from pathlib import Path

import pytest

from helmplan.command import CommandBuilder
from helmplan.errors import ConfigurationError
from helmplan.models import HelmDeclaration, Operation
from helmplan.operations import HelmOperations
from helmplan.resolver import resolve_chart, resolve_globals, resolve_release


@pytest.fixture
def helm() -> HelmDeclaration:
    """Declaration with a chart, a prod target and a release."""
    helm = HelmDeclaration(base_dir=Path("/work"))
    helm.chart("main").chart_dir = "charts/main"
    helm.target("prod")
    helm.release("web").from_chart("charts/web")
    return helm


def build(helm: HelmDeclaration) -> CommandBuilder:
    return CommandBuilder(resolve_globals(helm))


class TestLint:
    """Tests for helm lint invocations."""

    def test_basic_lint(self, helm: HelmDeclaration):
        invocation = build(helm).lint(resolve_chart(helm, "main"))

        assert invocation.subcommand == "lint"
        assert invocation.args == ("/work/charts/main",)
        assert invocation.working_dir == Path("/work")
        assert invocation.command_line == ["helm", "lint", "/work/charts/main"]

    def test_values_then_strict(self, helm: HelmDeclaration):
        helm.lint.strict = True
        helm.lint.values.values["replicas"] = 1
        helm.lint.values.value_files.append("ci.yaml")

        invocation = build(helm).lint(resolve_chart(helm, "main"))

        assert invocation.args == (
            "/work/charts/main",
            "--values", "/work/ci.yaml",
            "--set", "replicas=1",
            "--strict",
        )

    def test_global_strict_overridden_per_chart(self, helm: HelmDeclaration):
        helm.lint.strict = True
        helm.chart("main").lint.strict = False
        helm.chart("other").chart_dir = "charts/other"
        builder = build(helm)

        assert "--strict" not in builder.lint(resolve_chart(helm, "main")).args
        assert "--strict" in builder.lint(resolve_chart(helm, "other")).args

    def test_disabled_lint_is_skipped(self, helm: HelmDeclaration):
        helm.lint.enabled = False
        helm.chart("other").chart_dir = "charts/other"
        helm.chart("main").lint.enabled = True
        builder = build(helm)

        assert builder.lint(resolve_chart(helm, "other")) is None
        assert builder.lint(resolve_chart(helm, "main")) is not None

    def test_missing_chart_dir(self, helm: HelmDeclaration):
        helm.chart("empty")

        with pytest.raises(ConfigurationError):
            build(helm).lint(resolve_chart(helm, "empty"))


class TestInstall:
    """Tests for helm install invocations."""

    def test_positional_arguments(self, helm: HelmDeclaration):
        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.subcommand == "install"
        assert invocation.args == ("web", "charts/web")

    def test_all_installation_options(self, helm: HelmDeclaration):
        options = helm.release("web").installation
        options.atomic = True
        options.ca_file = "certs/ca.pem"
        options.cert_file = "/certs/client.pem"
        options.dry_run = True
        options.key_file = "certs/client.key"
        options.no_hooks = True
        options.password = "secret"
        options.repository = "https://charts.example.com"
        options.username = "deploy"
        options.verify = True
        options.version = "1.0"
        options.wait = True

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.args == (
            "web", "charts/web",
            "--atomic",
            "--ca-file", "/work/certs/ca.pem",
            "--cert-file", "/certs/client.pem",
            "--dry-run",
            "--key-file", "/work/certs/client.key",
            "--no-hooks",
            "--password", "secret",
            "--repo", "https://charts.example.com",
            "--username", "deploy",
            "--verify",
            "--version", "1.0",
            "--wait",
        )

    def test_devel_ignored_when_version_set(self, helm: HelmDeclaration):
        helm.installation.devel = True
        builder = build(helm)

        assert "--devel" in builder.install(resolve_release(helm, "web", "prod")).args

        helm.release("web").installation.version = "2.0.0"
        assert "--devel" not in builder.install(resolve_release(helm, "web", "prod")).args

    def test_server_and_global_options(self, helm: HelmDeclaration):
        helm.debug = True
        helm.server.namespace = "apps"
        helm.target("prod").server.kube_context = "prod-cluster"
        helm.target("prod").server.kube_config = "kube/config"
        helm.server.remote_timeout = 300

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.args == (
            "web", "charts/web",
            "--debug",
            "--kube-context", "prod-cluster",
            "--kubeconfig", "/work/kube/config",
            "--namespace", "apps",
            "--timeout", "300s",
        )

    def test_values_after_options_and_replace_last(self, helm: HelmDeclaration):
        release = helm.release("web")
        release.installation.wait = True
        release.values.values.update({"image.tag": "1.0", "replicas": 2})
        release.values.file_values["config"] = "files/app.conf"
        release.values.value_files.extend(["base.yaml", "prod.yaml"])
        release.upgrade.replace = True

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.args == (
            "web", "charts/web",
            "--wait",
            "--values", "/work/base.yaml",
            "--values", "/work/prod.yaml",
            "--set-file", "config=/work/files/app.conf",
            "--set-string", "image.tag=1.0",
            "--set", "replicas=2",
            "--replace",
        )

    def test_path_chart_is_resolved(self, helm: HelmDeclaration):
        helm.release("web").from_chart(Path("build/web-1.0.tgz"))

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.args[1] == "/work/build/web-1.0.tgz"

    def test_missing_chart(self, helm: HelmDeclaration):
        helm.release("nochart")

        with pytest.raises(ConfigurationError):
            build(helm).install(resolve_release(helm, "nochart", "prod"))

    def test_build_is_deterministic(self, helm: HelmDeclaration):
        helm.values.values.update({"a": "1", "b": 2})
        resolved = resolve_release(helm, "web", "prod")
        builder = build(helm)

        assert builder.install(resolved) == builder.install(resolved)
        assert builder.install(resolved).args == build(helm).install(resolved).args

    def test_password_masked_in_display(self, helm: HelmDeclaration):
        helm.installation.password = "secret"

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert "secret" in invocation.args
        assert "secret" not in invocation.display()
        assert "--password ****" in invocation.display()


class TestUpgrade:
    """Tests for helm upgrade invocations."""

    def test_always_installs(self, helm: HelmDeclaration):
        invocation = build(helm).upgrade(resolve_release(helm, "web", "prod"))

        assert invocation.subcommand == "upgrade"
        assert invocation.args == ("web", "charts/web", "--install")

    def test_reset_and_reuse_pass_through(self, helm: HelmDeclaration):
        helm.upgrade.reset_values = True
        helm.upgrade.reuse_values = True

        invocation = build(helm).upgrade(resolve_release(helm, "web", "prod"))

        assert invocation.args[-3:] == ("--install", "--reset-values", "--reuse-values")

    def test_same_installation_options_as_install(self, helm: HelmDeclaration):
        helm.installation.atomic = True
        helm.values.values["a"] = 1
        resolved = resolve_release(helm, "web", "prod")
        builder = build(helm)

        install_args = builder.install(resolved).args
        upgrade_args = builder.upgrade(resolved).args

        assert upgrade_args[: len(install_args)] == install_args


class TestInstallOrUpgrade:
    """Tests for choosing between install and upgrade."""

    def test_replace_uses_install(self, helm: HelmDeclaration):
        release = helm.release("web")
        release.upgrade.replace = True
        release.upgrade.reset_values = True
        release.upgrade.reuse_values = True

        [invocation] = HelmOperations(helm).plan(Operation.INSTALL_OR_UPGRADE, target="prod")

        assert invocation.subcommand == "install"
        assert "--replace" in invocation.args
        assert "--install" not in invocation.args
        assert "--reset-values" not in invocation.args
        assert "--reuse-values" not in invocation.args

    def test_default_uses_upgrade(self, helm: HelmDeclaration):
        [invocation] = HelmOperations(helm).plan(Operation.INSTALL_OR_UPGRADE, target="prod")

        assert invocation.subcommand == "upgrade"
        assert "--install" in invocation.args
        assert "--replace" not in invocation.args


class TestUninstall:
    """Tests for helm uninstall invocations."""

    def test_release_name_only(self, helm: HelmDeclaration):
        helm.values.values["a"] = 1
        helm.installation.atomic = True

        invocation = build(helm).uninstall(resolve_release(helm, "web", "prod"))

        assert invocation.subcommand == "uninstall"
        assert invocation.args == ("web",)

    def test_uninstall_options(self, helm: HelmDeclaration):
        helm.server.namespace = "apps"
        helm.installation.dry_run = True
        helm.target("prod").uninstall.keep_history = True

        invocation = build(helm).uninstall(resolve_release(helm, "web", "prod"))

        assert invocation.args == ("web", "--namespace", "apps", "--dry-run", "--keep-history")


class TestInvocationEnvironment:
    """Tests for executable, working directory and environment."""

    def test_custom_executable_and_env(self, helm: HelmDeclaration):
        helm.executable = "/opt/helm/bin/helm"
        helm.data_home = "/var/helm"

        invocation = build(helm).install(resolve_release(helm, "web", "prod"))

        assert invocation.executable == "/opt/helm/bin/helm"
        assert invocation.env == {"HELM_DATA_HOME": "/var/helm"}
