"""
Pydantic data models describing how a game is launched.

``GameConfig`` mirrors the sections of a game's TOML file
(``[game]``, ``[launch]``, ``[wine_config]``, ``[dxvk]``, ``[gamescope]``,
``[mangohud]``). ``LaunchSpec`` is the immutable value handed to the command
compiler; ``GameConfig.to_launch_spec()`` converts one into the other.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# LaunchSpec
# ============================================================================


class CompositorConfig(BaseModel):
    """Settings for the gamescope compositor wrapper."""

    model_config = ConfigDict(frozen=True)

    width: int = 1920
    height: int = 1080
    output_width: int = 1920
    output_height: int = 1080
    refresh_rate: int = 60
    # Validated when the command is compiled, not here
    upscaling: str = "fsr"
    fullscreen: bool = True
    force_grab_cursor: bool = False
    expose_wayland: bool = False
    hdr: bool = False
    adaptive_sync: bool = False
    immediate_flips: bool = False


class WrapperFlags(BaseModel):
    """Which wrapper processes surround the game command."""

    model_config = ConfigDict(frozen=True)

    overlay: bool = False
    compositor: Optional[CompositorConfig] = None
    scheduler_hint: bool = False


class RuntimeFlags(BaseModel):
    """Wine/Proton and DXVK switches that turn into environment variables."""

    model_config = ConfigDict(frozen=True)

    esync: bool = True
    fsync: bool = True
    translation_layer_enabled: bool = True
    translation_layer_async: bool = True
    translation_layer_hud: str = ""
    large_address_space: bool = False


class LaunchSpec(BaseModel):
    """
    Everything the compiler needs to build one game invocation.
    """

    model_config = ConfigDict(frozen=True)

    executable_path: Path
    working_directory: Path = Field(..., description="Root of the wine prefix")
    extra_args: Tuple[str, ...] = ()
    override_string: str = ""
    wrapper_flags: WrapperFlags = Field(default_factory=WrapperFlags)
    runtime_flags: RuntimeFlags = Field(default_factory=RuntimeFlags)


# ============================================================================
# GameConfig
# ============================================================================


class GameInfo(BaseModel):
    name: str
    executable: Path
    wine_prefix: Path
    proton_version: str
    dxvk_version: Optional[str] = None


class LaunchConfig(BaseModel):
    launch_options: str = ""
    game_args: List[str] = Field(default_factory=list)
    gamemode: bool = False
    mangohud: bool = False


class WineConfig(BaseModel):
    esync: bool = True
    fsync: bool = True
    dxvk: bool = True
    dxvk_async: bool = True
    large_address_aware: bool = False


class DxvkConfig(BaseModel):
    hud: str = ""


class GamescopeConfig(BaseModel):
    enabled: bool = False
    width: int = 1920
    height: int = 1080
    output_width: int = 1920
    output_height: int = 1080
    refresh_rate: int = 60
    upscaling: str = "fsr"
    fullscreen: bool = True
    force_grab_cursor: bool = False
    expose_wayland: bool = False
    hdr: bool = False
    adaptive_sync: bool = False
    immediate_flips: bool = False

    @model_validator(mode="after")
    def _check_dimensions(self) -> "GamescopeConfig":
        if not self.enabled:
            return self
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Gamescope width and height must be greater than 0")
        if self.output_width <= 0 or self.output_height <= 0:
            raise ValueError("Gamescope output width and height must be greater than 0")
        if self.refresh_rate <= 0:
            raise ValueError("Gamescope refresh rate must be greater than 0")
        return self

    def to_compositor(self) -> Optional[CompositorConfig]:
        if not self.enabled:
            return None
        return CompositorConfig(**self.model_dump(exclude={"enabled"}))


class MangohudConfig(BaseModel):
    enabled: bool = False


class GameConfig(BaseModel):
    """
    A game's configuration as stored in its TOML file.
    """

    model_config = ConfigDict(extra="ignore")

    game: GameInfo
    launch: LaunchConfig = Field(default_factory=LaunchConfig)
    wine_config: WineConfig = Field(default_factory=WineConfig)
    dxvk: DxvkConfig = Field(default_factory=DxvkConfig)
    gamescope: GamescopeConfig = Field(default_factory=GamescopeConfig)
    mangohud: MangohudConfig = Field(default_factory=MangohudConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "GameConfig":
        return cls.model_validate(data)

    def overlay_enabled(self) -> bool:
        # Either section may switch the overlay on
        return self.mangohud.enabled or self.launch.mangohud

    def to_launch_spec(self) -> LaunchSpec:
        return LaunchSpec(
            executable_path=self.game.executable,
            working_directory=self.game.wine_prefix,
            extra_args=tuple(self.launch.game_args),
            override_string=self.launch.launch_options,
            wrapper_flags=WrapperFlags(
                overlay=self.overlay_enabled(),
                compositor=self.gamescope.to_compositor(),
                scheduler_hint=self.launch.gamemode,
            ),
            runtime_flags=RuntimeFlags(
                esync=self.wine_config.esync,
                fsync=self.wine_config.fsync,
                translation_layer_enabled=self.wine_config.dxvk,
                translation_layer_async=self.wine_config.dxvk_async,
                translation_layer_hud=self.dxvk.hud,
                large_address_space=self.wine_config.large_address_aware,
            ),
        )
