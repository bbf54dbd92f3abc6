"""Group lookup interface for permcheck.

A group lookup is the remote (or local) source of truth for group
membership. The group cache calls it for users that are not cached, so it is
the only place where a permission check may block on I/O.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader  # type: ignore

from permcheck.common.exception import ConfigError, UserNotFound

logger = logging.getLogger(__name__)


class GroupLookup(ABC):
    """Abstract base class for group lookups.

    Implementations must be thread-safe, as the group cache calls them
    concurrently and without holding any lock.

    Example implementation:

        class ServiceGroupLookup(GroupLookup):
            def __init__(self, client) -> None:
                self._client = client

            def get_groups(self, username: str) -> List[str]:
                response = self._client.get(f"/v1/u/{username}/groups")
                if response.status_code == 404:
                    raise UserNotFound(username=username)
                response.raise_for_status()
                return response.json()
    """

    @abstractmethod
    def get_groups(self, username: str) -> List[str]:
        """Return all the groups that username is a member of.

        Args:
            username: The user to look up

        Returns:
            The group names, in no particular order

        Raises:
            UserNotFound: If the user is unknown to the identity service
            Exception: Any other failure; the group cache reports it as a
                       LookupFailure
        """


class StaticGroupLookup(GroupLookup):
    """Group lookup over an in-memory membership table.

    The table can be loaded from a YAML document with :meth:`from_file` and
    changed at runtime with :meth:`add_user` and :meth:`remove_user`.
    """

    def __init__(self, users: Optional[Dict[str, Iterable[str]]] = None) -> None:
        self._lock = threading.Lock()
        self._users: Dict[str, List[str]] = {}
        for name, groups in (users or {}).items():
            self.add_user(name, *groups)

    @classmethod
    def from_file(cls, path: str) -> "StaticGroupLookup":
        """Load a membership table from a YAML file.

        The document is either a mapping from user name to a list of group
        names, or such a mapping under a top-level `users` key.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.load(f, Loader=SafeLoader)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load groups file {path}: {e}") from e

        users = _parse_users(data, path)
        logger.info("Loaded group membership of %d users from %s", len(users), path)
        return cls(users)

    def add_user(self, name: str, *groups: str) -> None:
        """Add a user with the given groups, replacing any existing membership."""
        with self._lock:
            self._users[name] = list(groups)

    def remove_user(self, name: str) -> None:
        with self._lock:
            self._users.pop(name, None)

    def remove_users(self) -> None:
        with self._lock:
            self._users.clear()

    def get_groups(self, username: str) -> List[str]:
        with self._lock:
            groups = self._users.get(username)
            if groups is None:
                raise UserNotFound(username=username)
            return list(groups)


def _parse_users(data: Any, path: str) -> Dict[str, List[str]]:
    if data is None:
        return {}
    if isinstance(data, dict) and set(data) == {"users"} and not isinstance(data["users"], list):
        data = data["users"] or {}
    if not isinstance(data, dict):
        raise ConfigError(f"groups file {path} must contain a mapping of user names to groups")

    users: Dict[str, List[str]] = {}
    for name, groups in data.items():
        if groups is None:
            groups = []
        if not isinstance(groups, list) or not all(isinstance(g, str) for g in groups):
            raise ConfigError(f"groups of user {name} in {path} must be a list of names")
        users[str(name)] = groups
    return users
