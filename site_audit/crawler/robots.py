"""
robots.txt parsing (RFC 9309) and the per-crawl robots policy.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_audit.crawler.urls import url_origin

__all__ = ("RobotsTxtRules", "RobotsPolicy")

logger = logging.getLogger("SiteAudit")

_Directive = Tuple[str, str]


@dataclass
class _Group:
    agents: List[str] = field(default_factory=list)
    directives: List[_Directive] = field(default_factory=list)
    crawl_delay: Optional[float] = None

    @property
    def has_rules(self) -> bool:
        return bool(self.directives) or self.crawl_delay is not None


class RobotsTxtRules:
    """
    Parsed robots.txt.
    Longest matching rule wins, Allow wins a tie; empty Disallow allows everything.
    """
    _WILDCARD_RE = re.compile(r"(\*|\$)")

    def __init__(self, text: str) -> None:
        self._groups: List[_Group] = []
        self._regex_cache: Dict[str, re.Pattern[str]] = {}
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        allow: Optional[bool] = None
        for directive, pattern in group.directives:
            if not self._match_path(path, pattern):
                continue
            length = self._rule_len(pattern)
            if length > best_len or (length == best_len and directive == "allow" and allow is False):
                best_len = length
                allow = directive == "allow"
        return True if allow is None else allow

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return None if group is None else group.crawl_delay

    def _current(self, current: Optional[_Group]) -> _Group:
        # rules before any User-agent line apply to everyone
        if current is None:
            current = _Group(agents=["*"])
            self._groups.append(current)
        return current

    def _parse(self, text: str) -> None:
        current: Optional[_Group] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.lower().strip()
            val = val.strip()
            if key == "user-agent":
                if current is None or current.has_rules:
                    current = _Group()
                    self._groups.append(current)
                current.agents.append(val.lower())
            elif key == "allow":
                current = self._current(current)
                current.directives.append(("allow", val))
            elif key == "disallow":
                current = self._current(current)
                if val:
                    current.directives.append(("disallow", val))
            elif key == "crawl-delay":
                current = self._current(current)
                try:
                    current.crawl_delay = float(val)
                except ValueError:
                    logger.debug("robots.txt: bad Crawl-delay %r", val)

    def _match_group(self, user_agent: str) -> Optional[_Group]:
        ua = user_agent.lower()
        for group in self._groups:
            if any(a != "*" and ua.startswith(a) for a in group.agents):
                return group
        for group in self._groups:
            if "*" in group.agents:
                return group
        return None

    def _match_path(self, path: str, pattern: str) -> bool:
        if not pattern:
            return False
        if pattern not in self._regex_cache:
            anchored = pattern.endswith("$")
            body = pattern[:-1] if anchored else pattern
            esc = re.escape(body).replace(r"\*", ".*")
            self._regex_cache[pattern] = re.compile(f"^{esc}" + ("$" if anchored else ""))
        return bool(self._regex_cache[pattern].match(path))

    @classmethod
    def _rule_len(cls, pattern: str) -> int:
        return len(cls._WILDCARD_RE.sub("", pattern))


class RobotsPolicy:
    """robots.txt rules of one origin, or an absent policy that allows everything.

    Loaded once per crawl and read-only afterwards, so concurrent fetch tasks
    share it without locking.
    """

    def __init__(self, rules: Optional[RobotsTxtRules] = None) -> None:
        self.rules = rules

    @property
    def absent(self) -> bool:
        return self.rules is None

    @classmethod
    def allow_all(cls) -> RobotsPolicy:
        return cls(None)

    @classmethod
    def from_text(cls, text: str) -> RobotsPolicy:
        return cls(RobotsTxtRules(text))

    @classmethod
    async def load(
        cls,
        session: ClientSession,
        base_url: str,
        user_agent: str,
        timeout: float = 5.0,
    ) -> RobotsPolicy:
        """Fetch ``{origin}/robots.txt``; any failure yields the absent policy."""
        robots_url = f"{url_origin(base_url)}/robots.txt"
        try:
            async with session.get(
                robots_url,
                headers={"User-Agent": user_agent},
                timeout=ClientTimeout(total=timeout),
                allow_redirects=True,
            ) as resp:
                if resp.status != 200:
                    logger.debug("robots.txt %s -> HTTP %s, allowing all", robots_url, resp.status)
                    return cls.allow_all()
                text = await resp.text(errors="replace")
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error loading robots.txt %s: %s", robots_url, exc)
            return cls.allow_all()
        try:
            return cls.from_text(text)
        except (ValueError, re.error) as exc:
            logger.warning("Cannot parse robots.txt %s: %s", robots_url, exc)
            return cls.allow_all()

    def is_allowed(self, user_agent: str, url: str) -> bool:
        if self.rules is None:
            return True
        parts = urlsplit(url)
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        return self.rules.can_fetch(user_agent, path)

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        return None if self.rules is None else self.rules.crawl_delay(user_agent)
