"""Superficial ACL evaluation.

An ACL is a sequence of principal names: user names, group names, or one of
the "everyone" keywords. The rules applied by :func:`trivial_allow` to decide
whether the user `u` is authorized by the ACL name `n` are:

- If `u` is identical to `n`, authorization is granted.
- If `n` is "everyone", authorization is granted.
- If `n` is "everyone-local", authorization is granted if `u` does not have
  a domain.
- If `n` is "everyone@$domain", authorization is granted if `u` has the
  domain `$domain`.
- If `n` is "everyone-local@$domain", authorization is granted if `u` is of
  the form "$username@$domain" where `$username` contains no @ characters.

Any other name may be a group, which can only be resolved by asking the
identity service for the groups of the user.
"""

from typing import NamedTuple, Sequence, Tuple

EVERYONE = "everyone"
LOCAL = "-local"
DOMAIN_SEPARATOR = "@"


class TrivialDecision(NamedTuple):
    """Outcome of :func:`trivial_allow`.

    `allowed` can only be trusted when `decisive` is true; an undecided
    outcome is always reported as (False, False).
    """

    allowed: bool
    decisive: bool


def _wildcard_parts(name: str) -> Tuple[bool, bool, str]:
    """Split an ACL name of the everyone family.

    Returns (is_wildcard, is_local, domain_suffix) where domain_suffix is
    either empty or starts with "@".
    """
    if not name.startswith(EVERYONE):
        return False, False, ""
    suffix = name[len(EVERYONE) :]
    is_local = False
    if suffix.startswith(LOCAL):
        is_local = True
        suffix = suffix[len(LOCAL) :]
    if suffix and not suffix.startswith(DOMAIN_SEPARATOR):
        # The keyword doesn't end at a domain boundary or end of string.
        return False, False, ""
    return True, is_local, suffix


def is_wildcard(name: str) -> bool:
    """Report whether name is one of the everyone keywords."""
    return _wildcard_parts(name)[0]


def has_domain(name: str) -> bool:
    return DOMAIN_SEPARATOR in name


def trivial_allow(username: str, acl: Sequence[str]) -> TrivialDecision:
    """Report whether username is allowed by acl without consulting groups.

    The decision is decisive when a name in the ACL admits the user, when
    the ACL is empty, or when every name in the ACL is an everyone keyword,
    since none of those can name a group.
    """
    if not acl:
        return TrivialDecision(False, True)

    all_everyone = True
    for name in acl:
        if name == username:
            return TrivialDecision(True, True)

        wildcard, is_local, suffix = _wildcard_parts(name)
        if not wildcard:
            all_everyone = False
            continue

        domain_prefix = username
        if suffix:
            if not username.endswith(suffix):
                # The username doesn't have the required domain suffix.
                continue
            domain_prefix = username[: -len(suffix)]

        if is_local and has_domain(domain_prefix):
            # The username has more domains than the keyword allows.
            continue

        return TrivialDecision(True, True)

    return TrivialDecision(False, all_everyone)
