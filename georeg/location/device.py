import re

from georeg.models.common import UNKNOWN, DeviceInfo

# Order matters: several browsers embed "Chrome" and "Safari" in their user agent.
_BROWSER_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"Edg(e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/|Chromium/")),
    ("Safari", re.compile(r"Version/[\d.]+.*Safari/")),
    ("Internet Explorer", re.compile(r"MSIE |Trident/")),
)

_OS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Android", re.compile(r"Android")),
    ("Chrome OS", re.compile(r"CrOS")),
    ("Windows", re.compile(r"Windows")),
    ("macOS", re.compile(r"Mac OS X|Macintosh")),
    ("Linux", re.compile(r"Linux|X11")),
)

_MOBILE = re.compile(r"Mobi|iPhone|iPad|iPod|Android|Windows Phone|BlackBerry|Opera Mini", re.IGNORECASE)
_BOT = re.compile(r"bot\b|crawl|spider|slurp|headless|curl/|wget/|python-requests|httpx", re.IGNORECASE)


def _first_match(patterns: tuple[tuple[str, re.Pattern[str]], ...], user_agent: str) -> str:
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return UNKNOWN


def profile_device(user_agent: str | None, platform: str | None = None) -> DeviceInfo:
    """Classify the device/browser from its User-Agent string.

    `platform` is an optional client hint (e.g. the Sec-CH-UA-Platform header,
    quotes allowed); when absent the platform is derived from the OS.
    """
    user_agent = (user_agent or "").strip()
    if not user_agent:
        return DeviceInfo(platform=_clean_platform(platform) or UNKNOWN)

    os_name = _first_match(_OS_PATTERNS, user_agent)
    is_bot = bool(_BOT.search(user_agent))
    is_mobile = not is_bot and bool(_MOBILE.search(user_agent))

    return DeviceInfo(
        os=os_name,
        browser_family=_first_match(_BROWSER_PATTERNS, user_agent),
        platform=_clean_platform(platform) or os_name,
        user_agent_raw=user_agent,
        is_mobile=is_mobile,
        is_desktop=not is_mobile and not is_bot and os_name in {"Windows", "macOS", "Linux", "Chrome OS"},
        is_bot=is_bot,
    )


def _clean_platform(platform: str | None) -> str | None:
    if platform is None:
        return None
    return platform.strip().strip('"').strip() or None
