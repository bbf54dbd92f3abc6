"""Domain stripping for identity clients.

When an identity service starts adding a domain suffix (e.g. "@usso") to its
user and group names, existing users of the service still need the old,
unqualified names. :func:`strip_domain` wraps an identity client so that the
suffix is removed from every user and group name it returns, and added to
unqualified ACL names before they are checked.
"""

import logging
from typing import Dict, List, Sequence

from permcheck.acl import DOMAIN_SEPARATOR, has_domain
from permcheck.identity import ACLUser, Identity, IdentityClient, as_acl_user

logger = logging.getLogger(__name__)


def trim_domain(name: str, suffix: str) -> str:
    """Remove suffix from the end of name, if present."""
    if suffix and name.endswith(suffix):
        return name[: -len(suffix)]
    return name


def qualify_acl(acl: Sequence[str], suffix: str) -> List[str]:
    """Add suffix to every ACL name that does not already have a domain."""
    return [name if has_domain(name) else name + suffix for name in acl]


def strip_domain(client: IdentityClient, domain: str) -> IdentityClient:
    """Wrap client so that "@" + domain is stripped from user and group names.

    Identities returned by the wrapped client that are ACLUsers are returned
    as ACLUsers too; other identities are returned unchanged.
    """
    return DomainStrippingClient(client, domain)


class DomainStrippingClient(IdentityClient):
    def __init__(self, client: IdentityClient, domain: str) -> None:
        self._client = client
        self._suffix = DOMAIN_SEPARATOR + domain

    @property
    def suffix(self) -> str:
        return self._suffix

    def declared_identity(self, attrs: Dict[str, str]) -> Identity:
        ident = self._client.declared_identity(attrs)
        user = as_acl_user(ident)
        if user is None:
            return ident
        return DomainStrippingIdentity(user, self._suffix)


class DomainStrippingIdentity(ACLUser):
    """ACLUser that hides a domain suffix of the wrapped user.

    id() and domain() are passed through unchanged.
    """

    def __init__(self, user: ACLUser, suffix: str) -> None:
        self._user = user
        self._suffix = suffix

    def id(self) -> str:
        return self._user.id()

    def domain(self) -> str:
        return self._user.domain()

    def username(self) -> str:
        return trim_domain(self._user.username(), self._suffix)

    def groups(self) -> List[str]:
        return [trim_domain(g, self._suffix) for g in self._user.groups()]

    def allow(self, acl: Sequence[str]) -> bool:
        """Check acl with the domain added to unqualified names, then as given.

        The second check admits users while the identity service does not
        add the domain suffix yet. An error from the first check is raised
        without trying the second.
        """
        if self._user.allow(qualify_acl(acl, self._suffix)):
            return True
        logger.debug("Denied with %s added to %s, checking unqualified names", self._suffix, list(acl))
        return self._user.allow(list(acl))
