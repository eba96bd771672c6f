"""MC Server Link: Minecraft server status and player history client."""

__version__ = "1.0.0"
