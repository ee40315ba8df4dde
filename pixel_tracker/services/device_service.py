"""
Coarse device / browser classification from the User-Agent header.
"""
import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DeviceInfo:
    browser: str = "Unknown"
    browser_version: Optional[str] = None
    os: str = "Unknown"
    os_version: Optional[str] = None


# Order matters: Edge and Opera also claim Chrome, Chrome also claims Safari
_BROWSERS = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/([\d.]+)")),
    ("Opera", re.compile(r"(?:OPR|Opera)/([\d.]+)")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/([\d.]+)")),
    ("Firefox", re.compile(r"(?:Firefox|FxiOS)/([\d.]+)")),
    ("Chrome", re.compile(r"(?:Chrome|CriOS)/([\d.]+)")),
    ("Safari", re.compile(r"Version/([\d.]+).*Safari/")),
)

_OPERATING_SYSTEMS = (
    ("iOS", re.compile(r"(?:iPhone|iPad|iPod).*? OS ([\d_]+)")),
    ("Android", re.compile(r"Android ([\d.]+)")),
    ("Windows", re.compile(r"Windows NT ([\d.]+)")),
    ("macOS", re.compile(r"Mac OS X ([\d_.]+)")),
    ("Chrome OS", re.compile(r"CrOS \S+ ([\d.]+)")),
    ("Linux", re.compile(r"Linux()")),
)


def parse_user_agent(user_agent: str) -> DeviceInfo:
    if not user_agent:
        return DeviceInfo()

    browser, browser_version = "Unknown", None
    for name, pattern in _BROWSERS:
        match = pattern.search(user_agent)
        if match:
            browser, browser_version = name, match.group(1)
            break

    os_name, os_version = "Unknown", None
    for name, pattern in _OPERATING_SYSTEMS:
        match = pattern.search(user_agent)
        if match:
            os_name = name
            os_version = match.group(1).replace("_", ".") or None
            break

    return DeviceInfo(browser=browser, browser_version=browser_version, os=os_name, os_version=os_version)


def get_device_type(user_agent: str, screen_width: Optional[int] = None) -> str:
    """desktop | mobile | tablet, falling back to screen width when the UA is vague."""
    ua = (user_agent or "").lower()
    if "ipad" in ua or "tablet" in ua or ("android" in ua and "mobile" not in ua):
        return "tablet"
    if "mobi" in ua or "iphone" in ua or "ipod" in ua:
        return "mobile"
    if screen_width:
        if screen_width < 768:
            return "mobile"
        if screen_width < 1024:
            return "tablet"
    return "desktop"
