"""
Compilation of a LaunchSpec into a process invocation.

The command is built by a fixed sequence of stages, each a pure function of
its inputs::

    build_base_command -> apply_launch_options -> wrap_with_overlay
        -> wrap_with_compositor -> wrap_with_scheduler_hint

while ``build_environment`` derives the environment from the same spec.
Wrapper order is fixed: mangohud sits innermost, gamescope around it and
gamemoderun outermost.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from cellar.cellar_exceptions import (
    DuplicatePlaceholder,
    InvalidUpscalingMode,
    MissingRuntimePath,
)
from cellar.launch.sanitizer import PLACEHOLDER, sanitize_token, tokenize_launch_options
from cellar.runner_models import CompositorConfig, LaunchSpec, WrapperFlags

Command = Tuple[str, ...]

LAUNCHER_BINARY = "umu-run"
OVERLAY_BINARY = "mangohud"
COMPOSITOR_BINARY = "gamescope"
SCHEDULER_HINT_BINARY = "gamemoderun"

DXVK_DLL_OVERRIDES = "d3d10core,d3d11,d3d9,dxgi=n,b"

UPSCALING_FLAGS: Dict[str, Tuple[str, ...]] = {
    "fsr": ("-F", "fsr"),
    "nis": ("-F", "nis"),
    "integer": ("-S", "integer"),
    "stretch": ("-S", "stretch"),
    "linear": ("-n",),
    "nearest": ("-b",),
    "off": (),
}


@dataclass
class CompiledCommand:
    """
    The complete contract with the operating system for one launch.
    """

    argv: List[str]
    environment: Dict[str, str] = field(default_factory=dict)
    working_directory: str = ""

    def __post_init__(self):
        if not self.argv:
            raise ValueError("A compiled command needs at least one argv entry")

    @property
    def program(self) -> str:
        return self.argv[0]

    @property
    def args(self) -> List[str]:
        return self.argv[1:]


def build_base_command(spec: LaunchSpec, runtime_path: Optional[os.PathLike]) -> Command:
    if runtime_path is None:
        raise MissingRuntimePath("Proton path is required for game launching")
    return (LAUNCHER_BINARY, os.fspath(spec.executable_path), *spec.extra_args)


def build_runtime_environment(spec: LaunchSpec, runtime_path: os.PathLike) -> Dict[str, str]:
    flags = spec.runtime_flags
    env = {
        "WINEARCH": "win64",
        "WINEPREFIX": os.fspath(spec.working_directory),
        "PROTONPATH": os.fspath(runtime_path),
        "PROTON_VERB": "waitforexitandrun",
        "GAMEID": "umu-default",
        "HOST_LC_ALL": "en_US.UTF-8",
        "WINEDLLOVERRIDES": DXVK_DLL_OVERRIDES if flags.translation_layer_enabled else "",
    }
    if flags.esync:
        env["WINEESYNC"] = "1"
    if flags.fsync:
        env["WINEFSYNC"] = "1"
    if flags.large_address_space:
        env["WINE_LARGE_ADDRESS_AWARE"] = "1"
    return env


def build_translation_environment(spec: LaunchSpec) -> Dict[str, str]:
    flags = spec.runtime_flags
    if not flags.translation_layer_enabled:
        return {}
    env = {
        "DXVK_HUD": flags.translation_layer_hud or "0",
        "DXVK_STATE_CACHE_PATH": os.fspath(spec.working_directory / "dxvk_cache"),
    }
    if flags.translation_layer_async:
        env["DXVK_ASYNC"] = "1"
    return env


def build_environment(spec: LaunchSpec, runtime_path: os.PathLike) -> Dict[str, str]:
    env = build_runtime_environment(spec, runtime_path)
    env.update(build_translation_environment(spec))
    return env


def apply_launch_options(base: Command, override_string: str) -> Command:
    """
    Merge launch options with the base command.

    ``%command%`` is replaced by ``base``; without a placeholder ``base`` is
    appended after the options.

    Raises:
        UnclosedQuote: Unterminated double quote
        UnsafeOption: A token failed sanitizing
        DuplicatePlaceholder: ``%command%`` occurs more than once
    """
    tokens = tokenize_launch_options(override_string)

    merged: List[str] = []
    placed = False
    for token in tokens:
        if token == PLACEHOLDER:
            if placed:
                raise DuplicatePlaceholder("Multiple %command% placeholders found")
            placed = True
            merged.extend(base)
        else:
            merged.append(sanitize_token(token))

    if not placed:
        merged.extend(base)
    return tuple(merged)


def wrap_with_overlay(command: Command, flags: WrapperFlags) -> Command:
    # gamescope draws the overlay itself through --mangoapp
    if not flags.overlay or flags.compositor is not None:
        return command
    return (OVERLAY_BINARY, *command)


def compositor_args(compositor: CompositorConfig, overlay: bool) -> Tuple[str, ...]:
    """
    gamescope's own arguments, without the trailing ``--``.

    Raises:
        InvalidUpscalingMode: ``compositor.upscaling`` is not a known mode
    """
    if compositor.upscaling not in UPSCALING_FLAGS:
        raise InvalidUpscalingMode(f"Invalid upscaling method: {compositor.upscaling}")

    args = [
        "-w", str(compositor.width),
        "-h", str(compositor.height),
        "-W", str(compositor.output_width),
        "-H", str(compositor.output_height),
        "-r", str(compositor.refresh_rate),
    ]
    args.extend(UPSCALING_FLAGS[compositor.upscaling])

    if compositor.fullscreen:
        args.append("-f")
    if compositor.force_grab_cursor:
        args.append("--force-grab-cursor")
    if compositor.expose_wayland:
        args.append("--expose-wayland")
    if compositor.hdr:
        args.append("--hdr-enabled")
    if compositor.adaptive_sync:
        args.append("--adaptive-sync")
    if compositor.immediate_flips:
        args.append("--immediate-flips")
    if overlay:
        args.append("--mangoapp")
    return tuple(args)


def wrap_with_compositor(command: Command, flags: WrapperFlags) -> Command:
    if flags.compositor is None:
        return command
    return (COMPOSITOR_BINARY, *compositor_args(flags.compositor, flags.overlay), "--", *command)


def wrap_with_scheduler_hint(command: Command, flags: WrapperFlags) -> Command:
    if not flags.scheduler_hint:
        return command
    return (SCHEDULER_HINT_BINARY, *command)


def compile_launch(spec: LaunchSpec, runtime_path: Optional[os.PathLike]) -> CompiledCommand:
    """
    Compile ``spec`` into a CompiledCommand for the runtime at ``runtime_path``.

    Nothing is spawned and no file is touched; every failure is raised as a
    CompilationError.
    """
    command = build_base_command(spec, runtime_path)
    environment = build_environment(spec, runtime_path)
    command = apply_launch_options(command, spec.override_string)
    command = wrap_with_overlay(command, spec.wrapper_flags)
    command = wrap_with_compositor(command, spec.wrapper_flags)
    command = wrap_with_scheduler_hint(command, spec.wrapper_flags)
    return CompiledCommand(
        argv=list(command),
        environment=environment,
        working_directory=os.fspath(spec.working_directory),
    )


class CommandBuilder:
    """
    Builder style front end to ``compile_launch``::

        CommandBuilder(spec).with_proton_path(path).build()
    """

    def __init__(self, spec: LaunchSpec):
        self.spec = spec
        self.proton_path: Optional[os.PathLike] = None

    def with_proton_path(self, proton_path: os.PathLike) -> "CommandBuilder":
        self.proton_path = proton_path
        return self

    def build(self) -> CompiledCommand:
        return compile_launch(self.spec, self.proton_path)
