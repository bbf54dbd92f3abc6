import argparse
import sys
from typing import List, Optional

from permcheck import config, permcheck_logging
from permcheck.checker import PermChecker, new_perm_checker
from permcheck.common.exception import PermcheckException
from permcheck.identity import CheckerIdentityClient, IdentityClient, as_acl_user
from permcheck.lookup import StaticGroupLookup
from permcheck.strip import strip_domain

logger = permcheck_logging.init_logging("check")

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_ERROR = 2

# pylint: disable=pointless-string-statement
"""
Checks whether a user is admitted by an ACL.

Example usage:

```
permcheck -g groups.yaml bob everyone@admin beatles
```

The group membership file, the cache time and the domain default to the
values in the [permcheck] section of the configuration.
"""


def get_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check whether a user is admitted by an ACL")
    parser.add_argument("-c", "--config", help="configuration file to use instead of the installed one")
    parser.add_argument("-g", "--groups-file", help="YAML file with the groups of each user")
    parser.add_argument("-d", "--domain", help="domain to strip from user and group names")
    parser.add_argument("--cache-time", type=float, help="seconds group membership stays cached")
    parser.add_argument("username", help="user to check")
    parser.add_argument("acl", nargs="*", help="ACL names: users, groups or everyone keywords")
    return parser


def _build_checker(args: argparse.Namespace) -> PermChecker:
    lookup = StaticGroupLookup.from_file(args.groups_file) if args.groups_file else None
    return new_perm_checker("permcheck", lookup, args.cache_time)


def check(args: argparse.Namespace) -> bool:
    """Report whether the ACL of args admits its user.

    A configuration file given with -c is only used for this check.
    """
    if not args.config:
        return _check(args)

    with config.use_config_file("permcheck", args.config):
        return _check(args)


def _check(args: argparse.Namespace) -> bool:
    client: IdentityClient = CheckerIdentityClient(_build_checker(args))
    domain = args.domain if args.domain is not None else config.get("permcheck", "domain")
    if domain:
        client = strip_domain(client, domain)

    user = as_acl_user(client.declared_identity({"username": args.username}))
    if user is None:
        raise PermcheckException(f"identity {args.username} cannot be checked against an ACL")
    return user.allow(args.acl)


def main(argv: Optional[List[str]] = None) -> int:
    args = get_arg_parser().parse_args(argv)

    try:
        allowed = check(args)
    except PermcheckException as e:
        logger.error("Cannot check permission of %s: %s", args.username, e)
        return EXIT_ERROR

    print("allowed" if allowed else "denied")
    return EXIT_ALLOWED if allowed else EXIT_DENIED


if __name__ == "__main__":
    sys.exit(main())
