#!/usr/bin/env python3
"""
The build pipeline.

`IOSBuilder` exposes one method per stage: pods, signing identity,
xcodebuild, ipa packaging, dSYM archiving and cleanup. Stages return an exit
status (0 for success) instead of raising so the caller decides whether to go
on; only setup problems raise `SetupError`. Once `install_identity` has run,
`cleanup` must be called whatever happened afterwards.
"""

import sys
import traceback
from pathlib import Path
from typing import Callable, Dict, List, NamedTuple, Optional, TextIO

from .commands import package_application_command, pod_command, xcodebuild_command
from .naming import dsym_zip_name, ipa_name
from .provisioner import SigningProvisioner
from .security import ProvisioningRegistry
from .signing import CredentialArchive, Mobileprovision
from .utils import BuildError, SetupError, StrPath, archive_zip, expand_vars, launch, list_dirs

APP_BUNDLE_SUFFIX = ".app"
DSYM_BUNDLE_SUFFIX = ".app.dSYM"


class BuildContext(NamedTuple):
    """Everything a stage needs to know about the run; never modified."""
    workspace: Path
    env: Dict[str, str]
    pod: str
    security: str
    xcodebuild: str
    xcrun: str
    build_path: Path


class IOSBuilder:
    """Runs the stages of one build inside a workspace."""

    def __init__(
        self,
        pod: str,
        security: str,
        xcodebuild: str,
        xcrun: str,
        workspace: StrPath,
        env: Dict[str, str],
        build_directory: str = "build",
        listener: Optional[TextIO] = None,
        launcher: Callable[..., int] = launch,
        registry: Optional[ProvisioningRegistry] = None,
    ):
        if env is None:
            raise SetupError("Could not get build environment")
        workspace = Path(workspace)
        if not workspace.is_dir():
            raise SetupError(f"Workspace {workspace} does not exist")
        workspace = workspace.resolve()
        env = dict(env)

        self.listener = listener or sys.stdout
        self.launcher = launcher
        self.context = BuildContext(
            workspace=workspace,
            env=env,
            pod=pod,
            security=security,
            xcodebuild=xcodebuild,
            xcrun=xcrun,
            build_path=workspace / expand_vars(build_directory, env),
        )
        if registry is None:
            registry = ProvisioningRegistry(env.get("HOME") or Path.home())
        self.provisioner = SigningProvisioner(security, workspace, self._execute, registry, self.listener)

    def install_pods(self, project_root_path: Optional[str] = None) -> int:
        """Run `pod update` or `pod install` in the project root.

        Raises SetupError when the root is not a directory or pod cannot be
        started; otherwise returns pod's exit code.
        """
        root = self.context.workspace / (expand_vars(project_root_path, self.context.env) or "")
        if not root.is_dir():
            raise SetupError(f"Can not install pods: {root} is not a directory")
        cmd = pod_command(self.context.pod, root.joinpath("Podfile.lock").exists())
        print(f"Running pod {cmd[1]} in {root}", file=self.listener)
        try:
            return self._execute(cmd, cwd=root)
        except OSError as e:
            traceback.print_exc(file=self.listener)
            raise SetupError("Can not install pods") from e

    def install_identity(self, archive: CredentialArchive, mobileprovision: Mobileprovision) -> int:
        return self.provisioner.install_identity(archive, mobileprovision)

    def run_xcodebuild(
        self,
        xcworkspace_path: Optional[str] = None,
        xcodeproj_path: Optional[str] = None,
        target: Optional[str] = None,
        scheme: Optional[str] = None,
        configuration: Optional[str] = None,
        sdk: str = "iphoneos",
        additional_parameters: Optional[str] = None,
        code_sign: bool = False,
    ) -> int:
        """Compile in the workspace and return xcodebuild's exit code."""
        try:
            cmd = xcodebuild_command(
                self.context.xcodebuild,
                str(self.context.build_path),
                sdk,
                xcworkspace=expand_vars(xcworkspace_path, self.context.env),
                xcodeproj=expand_vars(xcodeproj_path, self.context.env),
                target=target,
                scheme=scheme,
                configuration=configuration,
                additional_parameters=expand_vars(additional_parameters, self.context.env),
                signing=self.provisioner.signing_flags() if code_sign else None,
            )
            return self._execute(cmd, cwd=self.context.workspace)
        except Exception:
            traceback.print_exc(file=self.listener)
            return 1

    def build_ipa(self, ipa_name_template: str) -> int:
        """Package every .app bundle of the build directory into an ipa."""
        template = expand_vars(ipa_name_template, self.context.env)
        return self._each_bundle(APP_BUNDLE_SUFFIX, lambda bundle: self._package(bundle, template))

    def zip_dsym(self, dsym_name_template: str) -> int:
        """Zip every .app.dSYM bundle of the build directory."""
        template = expand_vars(dsym_name_template, self.context.env)
        return self._each_bundle(DSYM_BUNDLE_SUFFIX, lambda bundle: self._zip(bundle, template))

    def cleanup(self):
        self.provisioner.cleanup()

    def _each_bundle(self, suffix: str, action: Callable[[Path], None]) -> int:
        # one failing bundle does not stop the others
        try:
            bundles = [d for d in list_dirs(self.context.build_path) if d.name.endswith(suffix)]
        except OSError:
            traceback.print_exc(file=self.listener)
            return 1
        result = 0
        for bundle in bundles:
            try:
                action(bundle)
            except Exception:
                traceback.print_exc(file=self.listener)
                result = 1
        return result

    def _package(self, bundle: Path, template: str):
        out_file = self.context.workspace / ipa_name(bundle.name, template)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        cmd = package_application_command(self.context.xcrun, bundle.name, str(out_file))
        status = self._execute(cmd, cwd=self.context.build_path)
        if status != 0:
            raise BuildError(f"PackageApplication failed for {bundle.name} with status code {status}")
        print(f"Packaged {out_file}", file=self.listener)

    def _zip(self, bundle: Path, template: str):
        out_file = self.context.workspace / dsym_zip_name(bundle.name, template)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        archive_zip(self.context.build_path, bundle.name, out_file)
        print(f"Archived {out_file}", file=self.listener)

    def _execute(self, cmd: List[str], cwd: Optional[StrPath] = None) -> int:
        return self.launcher(cmd, cwd=cwd, env=self.context.env, listener=self.listener)
