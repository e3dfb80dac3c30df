"""
Central Configuration for the Ping-Tuber Avatar
===============================================
Avatar artwork, detection threshold and preview-host settings.

Every value can be overridden through the environment (or a .env file
loaded by main.py), e.g. TUBER_THRESHOLD=0.05 or APP_FPS=60.
"""

import os
import platform
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# PLATFORM DETECTION
# =============================================================================

IS_LINUX = platform.system().lower() == "linux"
IS_WINDOWS = platform.system().lower() == "windows"
IS_MACOS = platform.system().lower() == "darwin"
IS_HEADLESS = os.environ.get("DISPLAY") is None and os.environ.get("WAYLAND_DISPLAY") is None and IS_LINUX


# =============================================================================
# BASE PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
ASSETS_DIR = PROJECT_ROOT / "assets"


# =============================================================================
# AVATAR SETTINGS
# =============================================================================

class AvatarConfig(BaseSettings):
    """Avatar Source Settings"""

    # Unknown keys are ignored so host settings dicts can carry extras
    model_config = SettingsConfigDict(
        env_prefix="TUBER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Source artwork (PNG with alpha recommended)
    image_path: Path = Field(default=ASSETS_DIR / "avatar.png")

    # Texture size; the artwork is stretched to fit
    width: int = Field(default=512, gt=0)
    height: int = Field(default=512, gt=0)

    # RMS level above which a block counts as speech ([-1, 1] samples)
    threshold: float = Field(default=0.1, ge=0.0, le=1.0)

    # Brightness offset applied to the artwork to get the idle frame
    idle_brightness: int = Field(default=-50, ge=-255, le=255)

    # Draw position inside the host canvas
    draw_x: int = Field(default=0)
    draw_y: int = Field(default=0)


# =============================================================================
# APPLICATION SETTINGS
# =============================================================================

def get_default_show_preview() -> bool:
    """Determine if preview should be shown based on platform."""
    return not IS_HEADLESS


class AppConfig(BaseSettings):
    """Preview Host Configuration"""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Debug mode
    debug: bool = Field(default=False)

    # Logging level
    log_level: str = Field(default="INFO")

    # Display settings (auto-disabled on headless Linux)
    show_preview: bool = Field(default_factory=get_default_show_preview)
    window_title: str = Field(default="Ping-Tuber")

    # Host tick/render rate
    fps: int = Field(default=30, ge=1, le=240)


# =============================================================================
# GLOBAL CONFIG INSTANCES
# =============================================================================

def load_config():
    """Load all configuration instances"""
    return {
        "avatar": AvatarConfig(),
        "app": AppConfig(),
    }


# Singleton instances for easy import
avatar_config = AvatarConfig()
app_config = AppConfig()


# =============================================================================
# VALIDATION & HELPERS
# =============================================================================

def validate_config(avatar: AvatarConfig = None, app: AppConfig = None) -> list[str]:
    """Validate configuration and return list of warnings/errors"""
    avatar = avatar or avatar_config
    app = app or app_config
    issues = []

    if IS_HEADLESS:
        issues.append("INFO: Headless mode detected. The preview window is disabled.")

    if not avatar.image_path.exists():
        issues.append(f"WARNING: Avatar image not found at {avatar.image_path}")

    if avatar.threshold == 0.0:
        issues.append("WARNING: TUBER_THRESHOLD is 0, any sound (including noise) counts as speech")

    if app.show_preview and IS_HEADLESS:
        issues.append("WARNING: APP_SHOW_PREVIEW is set but no display is available")

    return issues


def print_config_summary(avatar: AvatarConfig = None, app: AppConfig = None):
    """Print a summary of current configuration"""
    from rich.console import Console
    from rich.table import Table

    avatar = avatar or avatar_config
    app = app or app_config
    console = Console()

    table = Table(title="Ping-Tuber Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Avatar Image", str(avatar.image_path))
    table.add_row("Texture Size", f"{avatar.width}x{avatar.height}")
    table.add_row("Speech Threshold (RMS)", str(avatar.threshold))
    table.add_row("Idle Brightness", str(avatar.idle_brightness))
    table.add_row("Draw Position", f"({avatar.draw_x}, {avatar.draw_y})")
    table.add_row("Preview FPS", str(app.fps))
    table.add_row("Show Preview", str(app.show_preview))
    table.add_row("Debug Mode", str(app.debug))

    console.print(table)


if __name__ == "__main__":
    print_config_summary()

    issues = validate_config()
    if issues:
        print("\nConfiguration Issues:")
        for issue in issues:
            print(f"  - {issue}")
