"""Build policy - content pipeline configuration and default importers.

Holds:
- Extension → (importer, processor) defaults used by convention-based adds
- Platform/profile/configuration whitelists
- Pipeline assemblies referenced by the generated content project
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final, NamedTuple

from .errors import InvalidArgumentError, UnknownExtensionError


class ImporterInfo(NamedTuple):
    """Default importer/processor pair for a file extension."""

    importer: str
    processor: str


# Keys are lowercased extensions including the leading dot
DEFAULT_IMPORTERS: Final[dict[str, ImporterInfo]] = {
    # Models
    ".x": ImporterInfo("XImporter", "ModelProcessor"),
    ".fbx": ImporterInfo("FbxImporter", "ModelProcessor"),
    # Effects
    ".fx": ImporterInfo("EffectImporter", "EffectProcessor"),
    # Audio
    ".mp3": ImporterInfo("Mp3Importer", "SongProcessor"),
    ".wav": ImporterInfo("WavImporter", "SoundEffectProcessor"),
    ".wma": ImporterInfo("WmaImporter", "SongProcessor"),
    # Textures
    ".bmp": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".jpg": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".png": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".tga": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".dds": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".dib": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".hdr": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".pfm": ImporterInfo("TextureImporter", "TextureProcessor"),
    ".ppm": ImporterInfo("TextureImporter", "TextureProcessor"),
    # Fonts
    ".spritefont": ImporterInfo("FontDescriptionImporter", "FontDescriptionProcessor"),
}


def resolve_importer(path: str) -> ImporterInfo:
    """Look up the default importer/processor for a file.

    Args:
        path: Asset file path

    Returns:
        Default importer/processor pair

    Raises:
        UnknownExtensionError: If the extension has no mapping
    """
    extension = os.path.splitext(path)[1].lower()
    try:
        return DEFAULT_IMPORTERS[extension]
    except KeyError:
        raise UnknownExtensionError(extension, path) from None


XNA_VERSION: Final[str] = ", Version=4.0.0.0, PublicKeyToken=842cf8be1de50553"

PIPELINE_ASSEMBLIES: Final[tuple[str, ...]] = tuple(
    f"Microsoft.Xna.Framework.Content.Pipeline.{name}{XNA_VERSION}"
    for name in (
        "FBXImporter",
        "XImporter",
        "TextureImporter",
        "EffectImporter",
        "AudioImporters",
        "VideoImporters",
    )
)

CONTENT_PIPELINE_TARGETS: Final[str] = (
    "$(MSBuildExtensionsPath)\\Microsoft\\XNA Game Studio\\"
    "v4.0\\Microsoft.Xna.GameStudio.ContentPipeline.targets"
)

ALLOWED_PLATFORMS: Final[frozenset[str]] = frozenset({"Windows", "Xbox360", "WindowsPhone"})

ALLOWED_PROFILES: Final[frozenset[str]] = frozenset({"Reach", "HiDef"})

ALLOWED_CONFIGURATIONS: Final[frozenset[str]] = frozenset({"Debug", "Release"})


@dataclass
class ContentPolicy:
    """Platform and pipeline settings applied to every build request.

    Validates platform, profile and configuration against whitelists.
    """

    platform: str = "Windows"
    profile: str = "Reach"
    framework_version: str = "v4.0"
    configuration: str = "Release"
    pipeline_assemblies: tuple[str, ...] = PIPELINE_ASSEMBLIES
    targets_import: str = CONTENT_PIPELINE_TARGETS
    extra_properties: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.platform not in ALLOWED_PLATFORMS:
            raise InvalidArgumentError(f"Invalid platform: {self.platform}")
        if self.profile not in ALLOWED_PROFILES:
            raise InvalidArgumentError(f"Invalid profile: {self.profile}")
        if self.configuration not in ALLOWED_CONFIGURATIONS:
            raise InvalidArgumentError(f"Invalid configuration: {self.configuration}")
        self.pipeline_assemblies = tuple(self.pipeline_assemblies)

    def project_properties(self, output_path: str, intermediate_path: str) -> dict[str, str]:
        """MSBuild properties for the generated content project."""
        return {
            "XnaPlatform": self.platform,
            "XnaProfile": self.profile,
            "XnaFrameworkVersion": self.framework_version,
            "Configuration": self.configuration,
            "OutputPath": output_path,
            "IntermediateOutputPath": intermediate_path,
            **self.extra_properties,
        }
