"""Agent tools for pinecall."""

from pinecall.tools.auth import AuthFlow, register_auth_tools
from pinecall.tools.registry import ToolDescriptor, ToolRegistry
from pinecall.tools.voice import VoiceCallService, register_voice_tools

__all__ = [
    "AuthFlow",
    "ToolDescriptor",
    "ToolRegistry",
    "VoiceCallService",
    "register_auth_tools",
    "register_voice_tools",
]
