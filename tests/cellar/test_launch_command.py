"""
Tests for launch option sanitizing and launch command compilation.
"""

from pathlib import Path

import pytest

from cellar.cellar_exceptions import (
    DuplicatePlaceholder,
    InvalidUpscalingMode,
    MissingRuntimePath,
    UnclosedQuote,
    UnsafeOption,
)
from cellar.launch.command import (
    CommandBuilder,
    CompiledCommand,
    apply_launch_options,
    build_base_command,
    compile_launch,
    wrap_with_compositor,
    wrap_with_overlay,
    wrap_with_scheduler_hint,
)
from cellar.launch.sanitizer import DENIED_CHARACTERS, sanitize_token, tokenize_launch_options
from cellar.runner_models import CompositorConfig, LaunchSpec, RuntimeFlags, WrapperFlags

PROTON = Path("/runners/proton/GE-Proton9-1")
PREFIX = Path("/prefixes/game")
EXE = PREFIX / "drive_c" / "Game" / "game.exe"


def make_spec(**kwargs) -> LaunchSpec:
    params = {"executable_path": EXE, "working_directory": PREFIX}
    params.update(kwargs)
    return LaunchSpec(**params)


class TestTokenizer:
    """Tests for tokenize_launch_options."""

    def test_splits_on_spaces(self):
        assert tokenize_launch_options("  -dx11   %command%  -novid ") == ["-dx11", "%command%", "-novid"]

    def test_double_quotes_group(self):
        assert tokenize_launch_options('"My Profile" %command%') == ["My Profile", "%command%"]

    def test_unclosed_quote(self):
        with pytest.raises(UnclosedQuote):
            tokenize_launch_options('%command% "-dx11')

    def test_empty(self):
        assert tokenize_launch_options("") == []


class TestSanitizer:
    """Tests for sanitize_token."""

    @pytest.mark.parametrize("token", ["-dx11", "-DX11", "--fullscreen", "-1", "-1920x1080",
                                       "--width=1920", "-language=english", "gamemoderun",
                                       "PROTON_LOG=1", "My Profile"])
    def test_accepts(self, token):
        assert sanitize_token(token) == token

    @pytest.mark.parametrize("char", sorted(DENIED_CHARACTERS))
    def test_rejects_denied_characters(self, char):
        with pytest.raises(UnsafeOption):
            sanitize_token(f"abc{char}def")

    @pytest.mark.parametrize("token", ["a\tb", "a\nb", "a\x00b", "a\x1bb", "a\x7fb"])
    def test_rejects_control_characters(self, token):
        with pytest.raises(UnsafeOption):
            sanitize_token(token)

    @pytest.mark.parametrize("token", ["../save", "./run", "a//b", "x..y"])
    def test_rejects_traversal(self, token):
        with pytest.raises(UnsafeOption):
            sanitize_token(token)

    @pytest.mark.parametrize("token", ["-badflag", "--exec", "-", "--width=a,b", "--unknown=1"])
    def test_rejects_unknown_flags(self, token):
        with pytest.raises(UnsafeOption):
            sanitize_token(token)


class TestStages:
    """Tests for the individual compilation stages."""

    def test_base_command(self):
        spec = make_spec(extra_args=("-windowed",))
        assert build_base_command(spec, PROTON) == ("umu-run", str(EXE), "-windowed")

    def test_missing_runtime_path(self):
        with pytest.raises(MissingRuntimePath):
            build_base_command(make_spec(), None)

    def test_placeholder_is_replaced(self):
        assert apply_launch_options(("run", "/bin/game"), "-novid %command% -dx11") == (
            "-novid", "run", "/bin/game", "-dx11"
        )

    def test_base_appended_without_placeholder(self):
        assert apply_launch_options(("run", "/bin/game"), "-novid") == ("-novid", "run", "/bin/game")

    def test_empty_options_keep_base(self):
        assert apply_launch_options(("run", "/bin/game"), "") == ("run", "/bin/game")

    def test_duplicate_placeholder(self):
        with pytest.raises(DuplicatePlaceholder):
            apply_launch_options(("run",), "%command% %command%")

    def test_bad_flag_fails_before_substitution(self):
        with pytest.raises(UnsafeOption):
            apply_launch_options(("run", "/bin/game"), "-badflag %command%")

    def test_overlay_only(self):
        assert wrap_with_overlay(("umu-run", "g"), WrapperFlags(overlay=True)) == ("mangohud", "umu-run", "g")

    def test_overlay_skipped_under_compositor(self):
        flags = WrapperFlags(overlay=True, compositor=CompositorConfig())
        assert wrap_with_overlay(("umu-run",), flags) == ("umu-run",)

    def test_compositor_arguments(self):
        flags = WrapperFlags(
            overlay=True,
            compositor=CompositorConfig(
                width=1280, height=720, output_width=2560, output_height=1440,
                refresh_rate=144, upscaling="fsr", hdr=True, adaptive_sync=True,
            ),
        )
        assert wrap_with_compositor(("umu-run",), flags) == (
            "gamescope", "-w", "1280", "-h", "720", "-W", "2560", "-H", "1440", "-r", "144",
            "-F", "fsr", "-f", "--hdr-enabled", "--adaptive-sync", "--mangoapp", "--", "umu-run",
        )

    @pytest.mark.parametrize("mode, flags", [
        ("nis", ["-F", "nis"]),
        ("integer", ["-S", "integer"]),
        ("stretch", ["-S", "stretch"]),
        ("linear", ["-n"]),
        ("nearest", ["-b"]),
        ("off", []),
    ])
    def test_upscaling_modes(self, mode, flags):
        compositor = CompositorConfig(upscaling=mode, fullscreen=False)
        wrapped = wrap_with_compositor(("g",), WrapperFlags(compositor=compositor))
        assert list(wrapped[11:-2]) == flags

    def test_invalid_upscaling_mode(self):
        flags = WrapperFlags(compositor=CompositorConfig(upscaling="bicubic"))
        with pytest.raises(InvalidUpscalingMode):
            wrap_with_compositor(("g",), flags)

    def test_scheduler_hint(self):
        assert wrap_with_scheduler_hint(("g",), WrapperFlags(scheduler_hint=True)) == ("gamemoderun", "g")
        assert wrap_with_scheduler_hint(("g",), WrapperFlags()) == ("g",)


class TestCompileLaunch:
    """Tests for the full compilation pipeline."""

    def test_minimal_spec(self):
        command = compile_launch(make_spec(), PROTON)

        assert command.argv == ["umu-run", str(EXE)]
        assert command.working_directory == str(PREFIX)
        assert command.environment == {
            "WINEARCH": "win64",
            "WINEPREFIX": str(PREFIX),
            "PROTONPATH": str(PROTON),
            "PROTON_VERB": "waitforexitandrun",
            "GAMEID": "umu-default",
            "HOST_LC_ALL": "en_US.UTF-8",
            "WINEDLLOVERRIDES": "d3d10core,d3d11,d3d9,dxgi=n,b",
            "WINEESYNC": "1",
            "WINEFSYNC": "1",
            "DXVK_HUD": "0",
            "DXVK_ASYNC": "1",
            "DXVK_STATE_CACHE_PATH": str(PREFIX / "dxvk_cache"),
        }

    def test_translation_layer_disabled(self):
        flags = RuntimeFlags(translation_layer_enabled=False, esync=False, fsync=False,
                             large_address_space=True)
        env = compile_launch(make_spec(runtime_flags=flags), PROTON).environment

        assert env["WINEDLLOVERRIDES"] == ""
        assert env["WINE_LARGE_ADDRESS_AWARE"] == "1"
        assert not any(key.startswith("DXVK_") for key in env)
        assert "WINEESYNC" not in env and "WINEFSYNC" not in env

    def test_hud_value(self):
        env = compile_launch(make_spec(runtime_flags=RuntimeFlags(translation_layer_hud="fps")), PROTON).environment
        assert env["DXVK_HUD"] == "fps"

    def test_wrapper_order(self):
        spec = make_spec(
            override_string="-novid %command%",
            wrapper_flags=WrapperFlags(
                overlay=True,
                compositor=CompositorConfig(fullscreen=False, upscaling="off"),
                scheduler_hint=True,
            ),
        )
        argv = compile_launch(spec, PROTON).argv

        assert argv[0] == "gamemoderun"
        assert argv[1] == "gamescope"
        assert "mangohud" not in argv
        assert "--mangoapp" in argv
        separator = argv.index("--")
        assert argv[separator + 1:] == ["-novid", "umu-run", str(EXE)]

    def test_overlay_without_compositor(self):
        spec = make_spec(wrapper_flags=WrapperFlags(overlay=True, scheduler_hint=True))
        assert compile_launch(spec, PROTON).argv == ["gamemoderun", "mangohud", "umu-run", str(EXE)]

    def test_override_never_reaches_environment(self):
        spec = make_spec(override_string="PROTON_LOG=1 %command%")
        command = compile_launch(spec, PROTON)
        assert "PROTON_LOG" not in command.environment
        assert command.argv[0] == "PROTON_LOG=1"

    def test_compilation_is_deterministic(self):
        spec = make_spec(
            override_string="-dx11 %command% -novid",
            extra_args=("-windowed",),
            wrapper_flags=WrapperFlags(compositor=CompositorConfig(), scheduler_hint=True),
        )
        assert compile_launch(spec, PROTON) == compile_launch(spec, PROTON)

    def test_builder(self):
        command = CommandBuilder(make_spec()).with_proton_path(PROTON).build()
        assert command.program == "umu-run"
        assert command.args == [str(EXE)]

    def test_builder_without_proton_path(self):
        with pytest.raises(MissingRuntimePath):
            CommandBuilder(make_spec()).build()

    def test_compiled_command_needs_argv(self):
        with pytest.raises(ValueError):
            CompiledCommand(argv=[])
