"""Controllers module for coordinating UI and business logic."""

from mcserver_link.controllers.app_controller import AppController

__all__ = [
    "AppController",
]
