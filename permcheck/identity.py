"""Identities declared by an identity service.

An identity client turns the attributes declared by an already verified
credential into an :class:`Identity`. Identities that can also be queried
for group membership implement the :class:`ACLUser` capability; callers ask
for that capability once, with :func:`as_acl_user`, and branch on the result.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from permcheck.common.exception import NoDeclaredUser

if TYPE_CHECKING:
    from permcheck.checker import PermChecker

# Attribute holding the user name in a declared identity
USERNAME_ATTR = "username"


class Identity(ABC):
    @abstractmethod
    def id(self) -> str:
        """Return the unique identifier of the identity."""

    @abstractmethod
    def domain(self) -> str:
        """Return the domain of the identity, or "" when there is none."""


class ACLUser(Identity):
    """An identity that can be queried for group information."""

    @abstractmethod
    def username(self) -> str:
        """Return the user name of the user."""

    @abstractmethod
    def groups(self) -> List[str]:
        """Return all the groups that the user is a member of.

        Use of this method should be avoided if possible, as a user may
        potentially be in huge numbers of groups.
        """

    @abstractmethod
    def allow(self, acl: Sequence[str]) -> bool:
        """Report whether the user may access any of the users or groups in acl."""


class IdentityClient(ABC):
    @abstractmethod
    def declared_identity(self, attrs: Dict[str, str]) -> Identity:
        """Return the identity described by the declared attributes.

        Raises:
            PermcheckException: If the attributes do not describe an identity
        """


def as_acl_user(identity: Identity) -> Optional[ACLUser]:
    """Return identity as an ACLUser, or None if it lacks that capability."""
    if isinstance(identity, ACLUser):
        return identity
    return None


class CheckerUser(ACLUser):
    """A user whose groups and ACL membership come from a permission checker."""

    def __init__(self, name: str, checker: "PermChecker") -> None:
        self._name = name
        self._checker = checker

    def id(self) -> str:
        return self._name

    def domain(self) -> str:
        return ""

    def username(self) -> str:
        return self._name

    def groups(self) -> List[str]:
        return self._checker.groups(self._name)

    def allow(self, acl: Sequence[str]) -> bool:
        return self._checker.allow(self._name, acl)

    def __repr__(self) -> str:
        return f"CheckerUser({self._name!r})"


class CheckerIdentityClient(IdentityClient):
    """Identity client that answers group queries with a permission checker."""

    def __init__(self, checker: "PermChecker") -> None:
        self._checker = checker

    def declared_identity(self, attrs: Dict[str, str]) -> Identity:
        name = attrs.get(USERNAME_ATTR, "")
        if not name:
            raise NoDeclaredUser()
        return CheckerUser(name, self._checker)
