"""
Base adapter interface for server-side conversions destinations
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class ForwardResult:
    """Outcome of one forwarding call; adapters return it instead of raising."""

    success: bool
    attempts: int = 0
    status_code: Optional[int] = None
    error: Optional[str] = None
    retryable: bool = False
    response: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TokenRefreshResult:
    success: bool
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None


class BaseConversionsAdapter(ABC):
    """
    Base adapter interface for all conversions destinations.
    Adding a new destination only requires implementing this interface,
    without changing the tracking service.
    """

    @abstractmethod
    async def send_events(
        self,
        pixel_id: str,
        access_token: str,
        events: List[Dict[str, Any]],
        test_event_code: Optional[str] = None,
    ) -> ForwardResult:
        """
        Deliver already-translated events to the destination.
        Must never raise; every failure is reported through ForwardResult.
        """

    @abstractmethod
    async def refresh_access_token(self, access_token: str) -> TokenRefreshResult:
        """
        Exchange the current token for a fresh long-lived one.
        Single attempt, must never raise.
        """

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return destination name (meta, ...)"""
