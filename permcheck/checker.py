"""Permission checker for permcheck.

The permission checker decides whether a user is admitted by an ACL. It
first tries to decide from the ACL names alone and only asks the group cache
(and thus, possibly, the identity service) when some name in the ACL could
be a group.
"""

import logging
from typing import FrozenSet, List, Optional, Sequence

from permcheck import config
from permcheck.acl import is_wildcard, trivial_allow
from permcheck.common.exception import ConfigError
from permcheck.groupcache import GroupCache
from permcheck.identity import CheckerIdentityClient, IdentityClient
from permcheck.lookup import GroupLookup, StaticGroupLookup
from permcheck.strip import strip_domain

logger = logging.getLogger(__name__)

# Global permission checker instance
_checker: Optional["PermChecker"] = None


class PermChecker:
    """Checks ACL membership, caching group lookups for at most cache_time seconds.

    The remaining keyword arguments configure the retries of a failing
    lookup; see :class:`GroupCache`.
    """

    def __init__(
        self,
        lookup: Optional[GroupLookup] = None,
        cache_time: float = 0.0,
        max_retries: int = 0,
        retry_interval: float = 1.0,
        exponential_backoff: bool = False,
        *,
        cache: Optional[GroupCache] = None,
    ) -> None:
        if cache is None:
            if lookup is None:
                raise ValueError("PermChecker needs a group lookup or a group cache")
            cache = GroupCache(
                lookup,
                cache_time,
                max_retries=max_retries,
                retry_interval=retry_interval,
                exponential_backoff=exponential_backoff,
            )
        self._cache = cache

    @classmethod
    def from_cache(cls, cache: GroupCache) -> "PermChecker":
        """Return a checker that uses the given cache for its group queries."""
        return cls(cache=cache)

    @property
    def cache(self) -> GroupCache:
        return self._cache

    def allow(self, username: str, acl: Sequence[str]) -> bool:
        """Report whether acl admits username.

        A user unknown to the identity service is only admitted by its own
        name or by an everyone keyword.

        Raises:
            LookupFailure: If the groups of the user were needed and could
                           not be fetched
        """
        allowed, decisive = trivial_allow(username, acl)
        if decisive:
            logger.debug("Permission %s (trivial): username=%s, acl=%s", _verdict(allowed), username, list(acl))
            return allowed

        logger.debug(
            "Looking up groups of %s for ACL names %s", username, [name for name in acl if not is_wildcard(name)]
        )
        groups = self._cache.group_set(username)
        allowed = _any_member(groups, acl)
        log_func = logger.info if allowed else logger.warning
        log_func("Permission %s: username=%s, acl=%s", _verdict(allowed), username, list(acl))
        return allowed

    def groups(self, username: str) -> List[str]:
        return self._cache.groups(username)

    def cache_evict(self, username: str) -> None:
        self._cache.cache_evict(username)

    def cache_evict_all(self) -> None:
        self._cache.cache_evict_all()


def _any_member(groups: FrozenSet[str], acl: Sequence[str]) -> bool:
    return any(name in groups for name in acl)


def _verdict(allowed: bool) -> str:
    return "GRANTED" if allowed else "DENIED"


def new_perm_checker(
    component: str = "permcheck", lookup: Optional[GroupLookup] = None, cache_time: Optional[float] = None
) -> PermChecker:
    """Build a permission checker from the configuration of component.

    Args:
        component: The configuration component to read
        lookup: The group lookup to use; when None, the membership table in
                the configured groups_file is loaded
        cache_time: Overrides the configured cache_time

    Raises:
        ConfigError: If no lookup is given and no groups_file is configured, or
                     if an option has a malformed value
    """
    if lookup is None:
        groups_file = config.get(component, "groups_file")
        if not groups_file:
            raise ConfigError(f"no groups_file configured for {component} and no group lookup provided")
        lookup = StaticGroupLookup.from_file(groups_file)

    if cache_time is None:
        cache_time = config.getfloat(component, "cache_time", fallback=config.DEFAULT_CACHE_TIME)
    max_retries = config.getint(component, "max_retries", fallback=config.DEFAULT_MAX_RETRIES)
    retry_interval = config.getfloat(component, "retry_interval", fallback=config.DEFAULT_RETRY_INTERVAL)
    exponential_backoff = config.getboolean(component, "exponential_backoff", fallback=False)

    logger.info(
        "Permission checker caching groups for %s seconds (max_retries=%d, retry_interval=%s, exponential_backoff=%s)",
        cache_time,
        max_retries,
        retry_interval,
        exponential_backoff,
    )
    return PermChecker(
        lookup,
        cache_time,
        max_retries=max_retries,
        retry_interval=retry_interval,
        exponential_backoff=exponential_backoff,
    )


def get_perm_checker(component: str = "permcheck", lookup: Optional[GroupLookup] = None) -> PermChecker:
    """Get the global permission checker instance.

    The checker is created on first access from the configuration of
    component and reused for all subsequent calls, which ignore their
    arguments.
    """
    global _checker

    if _checker is None:
        _checker = new_perm_checker(component, lookup)

    return _checker


def get_identity_client(component: str = "permcheck") -> IdentityClient:
    """Return an identity client backed by the global permission checker.

    When the component configures a domain, the client strips it from user
    and group names.
    """
    client: IdentityClient = CheckerIdentityClient(get_perm_checker(component))
    domain = config.get(component, "domain")
    if domain:
        logger.info("Stripping domain @%s from declared identities", domain)
        client = strip_domain(client, domain)
    return client
