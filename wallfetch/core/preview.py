"""Terminal previews and external viewers for browsing the collection."""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Viewers tried in order when none is configured
IMAGE_VIEWERS = [
    "feh",
    "eog",
    "gwenview",
    "ristretto",
    "sxiv",
    "nsxiv",
    "qiv",
    "xviewer",
    "open",  # macOS
    "xdg-open",
]

# GUI viewers that keep running; started in the background
BACKGROUND_VIEWERS = {"feh", "eog", "gwenview", "ristretto", "sxiv", "nsxiv", "qiv", "xviewer"}


class PreviewTool(Enum):
    KITTY = "kitty"
    SIXEL = "sixel"
    CHAFA = "chafa"
    VIU = "viu"
    NONE = "none"


@dataclass
class ImageInfo:
    format: str
    width: int
    height: int
    mode: str

    def __str__(self) -> str:
        return f"{self.format} {self.width}x{self.height} ({self.mode})"


def read_image_info(image_path: str | Path) -> Optional[ImageInfo]:
    """Read format, dimensions and color mode. None if the file isn't an image."""
    try:
        with Image.open(image_path) as img:
            return ImageInfo(format=img.format or "unknown", width=img.width, height=img.height, mode=img.mode)
    except (OSError, UnidentifiedImageError) as e:
        logger.debug("Could not read image info for %s: %s", image_path, e)
        return None


def detect_image_viewer() -> Optional[str]:
    """Return the first installed viewer from IMAGE_VIEWERS."""
    for viewer in IMAGE_VIEWERS:
        if shutil.which(viewer):
            return viewer
    return None


def open_with_viewer(image_path: str, viewer: str) -> None:
    """Open an image in an external viewer.

    Raises:
        OSError: If the viewer can't be started
        subprocess.CalledProcessError: If a foreground viewer exits non-zero
    """
    cmd = [viewer, image_path]
    if Path(viewer).name in BACKGROUND_VIEWERS:
        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    else:
        subprocess.run(cmd, check=True)


class PreviewManager:
    """Detects a terminal image preview tool and renders through it."""

    def __init__(self, env: Optional[dict] = None):
        self.env = os.environ if env is None else env
        size = shutil.get_terminal_size((80, 24))
        self.columns = size.columns
        self.lines = size.lines
        self.tool = self.detect_tool()

    def detect_tool(self) -> PreviewTool:
        term = self.env.get("TERM", "")
        if (self.env.get("KITTY_WINDOW_ID") or "kitty" in term) and shutil.which("kitty"):
            return PreviewTool.KITTY
        if self._supports_sixel(term) and shutil.which("img2sixel"):
            return PreviewTool.SIXEL
        if shutil.which("chafa"):
            return PreviewTool.CHAFA
        if shutil.which("viu"):
            return PreviewTool.VIU
        return PreviewTool.NONE

    def _supports_sixel(self, term: str) -> bool:
        if "sixel" in term or term.startswith("mlterm"):
            return True
        return self.env.get("TERM_PROGRAM", "") in {"WezTerm", "iTerm.app", "mintty"}

    def can_preview(self) -> bool:
        return self.tool is not PreviewTool.NONE

    @property
    def tool_name(self) -> str:
        return self.tool.value

    def preview_command(self, image_path: str) -> list[str]:
        # leave room for the info lines printed under the picture
        width = max(self.columns - 2, 10)
        height = max(self.lines - 8, 5)
        if self.tool is PreviewTool.KITTY:
            return ["kitty", "+kitten", "icat", "--align", "left", image_path]
        if self.tool is PreviewTool.SIXEL:
            return ["img2sixel", "-w", str(width * 8), image_path]
        if self.tool is PreviewTool.CHAFA:
            return ["chafa", "--size", f"{width}x{height}", image_path]
        if self.tool is PreviewTool.VIU:
            return ["viu", "-w", str(width), image_path]
        raise RuntimeError("no preview tool available")

    def preview_image(self, image_path: str) -> None:
        """Render an image in the terminal.

        Raises:
            RuntimeError: If no preview tool is available
            subprocess.CalledProcessError: If the tool fails
        """
        subprocess.run(self.preview_command(image_path), check=True)

    @staticmethod
    def install_instructions() -> str:
        return (
            "Install one of these tools for terminal previews:\n"
            "  chafa  - apt install chafa / brew install chafa\n"
            "  viu    - cargo install viu / brew install viu\n"
            "  kitty  - use the kitty terminal (icat kitten)\n"
        )
