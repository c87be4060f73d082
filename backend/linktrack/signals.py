"""
Client signal extraction from raw user-agent strings.

Classification is plain case-insensitive substring matching in a fixed
order, so results are deterministic for any input. The user-agents parser is
only consulted for the bot flag.
"""

from dataclasses import dataclass
from typing import Optional

from user_agents import parse as parse_user_agent  # type: ignore

from .logging_config import get_logger

logger = get_logger(__name__)

DEVICE_MOBILE = "mobile"
DEVICE_TABLET = "tablet"
DEVICE_DESKTOP = "desktop"

UNKNOWN = "Other"

TABLET_MARKERS = ("tablet", "ipad")
MOBILE_MARKERS = ("mobile", "android", "iphone", "ipod")

# (label, markers that must appear, markers that must not appear)
BROWSER_RULES = (
    ("Firefox", ("firefox",), ()),
    ("Edge", ("edg",), ()),
    ("Chrome", ("chrome",), ("edg",)),
    ("Safari", ("safari",), ("chrome",)),
    ("Opera", ("opr/", "opera"), ()),
)

OS_RULES = (
    ("Windows", ("windows",)),
    ("macOS", ("mac",)),
    ("Linux", ("linux",)),
    ("Android", ("android",)),
    ("iOS", ("ios", "iphone", "ipad")),
)


@dataclass(frozen=True)
class ClientSignals:
    device_type: str
    browser: str
    os: str
    is_bot: bool = False


def _normalize(user_agent: Optional[str]) -> str:
    if not isinstance(user_agent, str):
        return ""
    return user_agent.lower()


def get_device_type(user_agent: Optional[str]) -> str:
    """Classify as tablet, mobile or desktop."""
    ua = _normalize(user_agent)
    if any(marker in ua for marker in TABLET_MARKERS):
        return DEVICE_TABLET
    if any(marker in ua for marker in MOBILE_MARKERS):
        return DEVICE_MOBILE
    return DEVICE_DESKTOP


def get_browser(user_agent: Optional[str]) -> str:
    ua = _normalize(user_agent)
    for label, required, excluded in BROWSER_RULES:
        if any(m in ua for m in required) and not any(m in ua for m in excluded):
            return label
    return UNKNOWN


def get_os(user_agent: Optional[str]) -> str:
    ua = _normalize(user_agent)
    for label, markers in OS_RULES:
        if any(m in ua for m in markers):
            return label
    return UNKNOWN


def is_bot(user_agent: Optional[str]) -> bool:
    """Bot detection via the user-agents parser; False when it cannot tell."""
    if not user_agent or not isinstance(user_agent, str):
        return False
    try:
        return bool(parse_user_agent(user_agent).is_bot)
    except Exception as e:
        logger.debug(f"User agent parser failed: {e}")
        return False


def extract_signals(user_agent: Optional[str]) -> ClientSignals:
    """Derive every client signal from one user-agent string."""
    return ClientSignals(
        device_type=get_device_type(user_agent),
        browser=get_browser(user_agent),
        os=get_os(user_agent),
        is_bot=is_bot(user_agent),
    )
