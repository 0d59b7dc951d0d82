"""API controllers for the CRM Agent Host.

Controllers are auto-discovered by WebApplicationBuilder from this package.
"""

from api.controllers.app_controller import AppController
from api.controllers.chat_controller import ChatController

__all__ = [
    "AppController",
    "ChatController",
]
