"""Tests for the end-to-end build run."""

import io

import pytest

from ios_build import run
from iosbuilder import load_opts

from conftest import make_p12, make_profile_bytes


@pytest.fixture
def signing_env(tmp_path, workspace, identity):
    p12 = tmp_path / "cert.p12"
    p12.write_bytes(make_p12(identity.key, identity.certificate, b"secret"))
    profile = tmp_path / "app.mobileprovision"
    profile.write_bytes(make_profile_bytes("ABC-123", [identity.certificate]))
    (workspace / "build" / "MyApp.app").mkdir(parents=True)
    (workspace / "build" / "MyApp.app.dSYM").mkdir()
    return {
        "WORKSPACE": str(workspace),
        "IOSBUILDER_POD": "pod",
        "IOSBUILDER_SECURITY": "security",
        "IOSBUILDER_XCODEBUILD": "xcodebuild",
        "IOSBUILDER_XCRUN": "xcrun",
        "IOSBUILDER_PROJECT_ROOT": ".",
        "IOSBUILDER_XCWORKSPACE": "App.xcworkspace",
        "IOSBUILDER_SCHEME": "App",
        "IOSBUILDER_CODE_SIGN": "true",
        "IOSBUILDER_P12": str(p12),
        "IOSBUILDER_P12_PASSWORD": "secret",
        "IOSBUILDER_MOBILEPROVISION": str(profile),
        "IOSBUILDER_IPA_NAME": "$APP_NAME-v1",
        "IOSBUILDER_DSYM_NAME": "$APP_NAME-v1",
    }


def tools(launcher):
    return [c.cmd[0] if c.cmd[0] != "security" else c.cmd[1] for c in launcher.calls]


def test_full_build(signing_env, launcher, registry, workspace):
    log = io.StringIO()

    result = run(load_opts(signing_env), log, environ=signing_env, launcher=launcher, registry=registry)

    assert result == 0
    assert tools(launcher) == [
        "pod",
        "create-keychain", "import", "unlock-keychain", "set-keychain-settings", "set-key-partition-list",
        "xcodebuild",
        "xcrun",
        "delete-keychain",
    ]
    assert "CODE_SIGN_IDENTITY=Dev Cert" in launcher.calls_to("xcodebuild")[0].cmd
    assert (workspace / "MyApp-v1.app.dSYM.zip").is_file()
    assert "Build completed successfully" in log.getvalue()


def test_compile_failure_still_cleans_up(signing_env, launcher, registry):
    launcher.results["xcodebuild"] = 65

    result = run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry)

    assert result == 65
    assert launcher.calls_to("xcrun") == []
    assert tools(launcher)[-1] == "delete-keychain"


def test_identity_failure_stops_build(signing_env, launcher, registry):
    launcher.results["import"] = 1

    result = run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry)

    assert result == 1
    assert launcher.calls_to("xcodebuild") == []
    assert tools(launcher)[-1] == "delete-keychain"


def test_unreadable_signing_material(signing_env, launcher, registry):
    signing_env["IOSBUILDER_P12_PASSWORD"] = "wrong"

    result = run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry)

    assert result == 1
    assert launcher.calls_to("xcodebuild") == []
    assert launcher.calls_to("security") == []


def test_pod_failure_stops_before_signing(signing_env, launcher, registry):
    launcher.results["pod"] = 1

    assert run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry) == 1
    assert tools(launcher) == ["pod"]


def test_unsigned_build(signing_env, launcher, registry):
    signing_env["IOSBUILDER_CODE_SIGN"] = "false"
    signing_env["IOSBUILDER_ZIP_DSYM"] = "false"

    assert run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry) == 0
    assert tools(launcher) == ["pod", "xcodebuild", "xcrun"]


def test_packaging_failure(signing_env, launcher, registry, workspace):
    launcher.results["PackageApplication"] = 1

    assert run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry) == 1
    assert not (workspace / "MyApp-v1.app.dSYM.zip").exists()
    assert tools(launcher)[-1] == "delete-keychain"


def test_placeholders_use_given_environment(signing_env, launcher, registry, workspace, monkeypatch):
    monkeypatch.delenv("BUILD_NUMBER", raising=False)
    signing_env["BUILD_NUMBER"] = "7"
    signing_env["IOSBUILDER_IPA_NAME"] = "$APP_NAME-${BUILD_NUMBER}"
    signing_env["IOSBUILDER_DSYM_NAME"] = "$APP_NAME-${BUILD_NUMBER}"

    assert run(load_opts(signing_env), io.StringIO(), environ=signing_env, launcher=launcher, registry=registry) == 0

    xcrun = launcher.calls_to("xcrun")[0].cmd
    assert xcrun[xcrun.index("-o") + 1] == str(workspace.resolve() / "MyApp-7.app.ipa")
    assert (workspace / "MyApp-7.app.dSYM.zip").is_file()
