"""Unit tests for the permission checker.

Tests cover:
- Decisions that need no group lookup
- Group membership through the cache, and cache eviction
- Propagation of lookup failures
- Building the checker from configuration
"""

import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

import permcheck.checker as checker_module
from permcheck import config
from permcheck.checker import PermChecker, get_identity_client, get_perm_checker, new_perm_checker
from permcheck.common.exception import ConfigError, LookupFailure
from permcheck.groupcache import GroupCache
from permcheck.identity import as_acl_user
from permcheck.lookup import GroupLookup, StaticGroupLookup
from permcheck.strip import DomainStrippingIdentity

DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "data"))
GROUPS_FILE = os.path.join(DATA_DIR, "groups.yaml")


class UnreachableLookup(GroupLookup):
    def get_groups(self, username):
        raise AssertionError(f"unexpected group lookup for {username}")


class BrokenLookup(GroupLookup):
    def get_groups(self, username):
        raise ConnectionError("connection refused")


# (about, username, acl, expect)
PERM_CHECKER_TESTS = [
    ("no permissions always yields false", "joe", [], False),
    ("if the user isn't found, it's not an error", "joe", ["beatles"], False),
    ("if the perms allow everyone, it's ok", "joe", ["noone", "everyone"], True),
    ("if the user is part of a required group, it's ok", "bob", ["noone", "beatles"], True),
    ("if the perms allow the user itself, it's ok", "joe", ["noone", "joe"], True),
    ("if the perms allow everyone@somewhere, it's ok", "joe@somewhere", ["everyone@somewhere"], True),
    ("everyone@x works with multiple @s", "joe@foo@somewhere@else", ["everyone@somewhere@else"], True),
    ("'everyone' as a prefix to a user name", "joex", ["everyonex"], False),
    ("a user with no domain is allowed by everyone-local", "joe", ["everyone-local"], True),
    ("a user with a domain is not allowed by everyone-local", "joe@somewhere", ["everyone-local"], False),
    ("a user with a domain is matched by everyone-local@domain", "joe@somewhere", ["everyone-local@somewhere"], True),
    ("extra domains are not matched", "joe@xxx@somewhere@foo", ["everyone-local@somewhere@foo"], False),
    ("groups with a domain", "alice@usso", ["admins@usso"], True),
]


class TestPermChecker(unittest.TestCase):
    def setUp(self):
        self.store = StaticGroupLookup({"bob": ["beatles"], "alice@usso": ["admins@usso"]})
        self.checker = PermChecker(self.store, 3600)

    def test_perm_checker(self):
        for about, username, acl, expect in PERM_CHECKER_TESTS:
            with self.subTest(about):
                self.assertEqual(self.checker.allow(username, acl), expect)

    def test_trivial_decisions_do_not_lookup(self):
        checker = PermChecker(UnreachableLookup(), 3600)
        for username in ["bob", "bob@usso", "agent@admin@candid", ""]:
            with self.subTest(username):
                self.assertTrue(checker.allow(username, ["somegroup", username]))
                self.assertFalse(checker.allow(username, []))
        self.assertTrue(checker.allow("joe", ["everyone"]))
        self.assertFalse(checker.allow("bob@foo", ["everyone@no-domain", "everyone@bar"]))

    def test_cache(self):
        store = StaticGroupLookup()
        checker = PermChecker(store, 3600)

        self.assertFalse(checker.allow("bob", ["beatles"]))

        store.add_user("bob", "beatles")

        # The group details are cached, so the request still fails even
        # though bob was just added to the required group.
        self.assertFalse(checker.allow("bob", ["beatles"]))

        checker.cache_evict_all()
        self.assertTrue(checker.allow("bob", ["beatles"]))

    def test_cache_evict(self):
        store = StaticGroupLookup({"alice": ["admins"]})
        checker = PermChecker(store, 3600)
        self.assertFalse(checker.allow("bob", ["beatles"]))
        self.assertTrue(checker.allow("alice", ["admins"]))

        store.add_user("bob", "beatles")
        store.remove_user("alice")
        checker.cache_evict("bob")

        self.assertTrue(checker.allow("bob", ["beatles"]))
        # alice is still served from the cache
        self.assertTrue(checker.allow("alice", ["admins"]))

    def test_error(self):
        checker = PermChecker(BrokenLookup(), 3600)
        with self.assertRaisesRegex(LookupFailure, r"^cannot fetch groups: connection refused$"):
            checker.allow("bob", ["beatles"])

    def test_all_everyone_is_trivial(self):
        checker = PermChecker(BrokenLookup(), 3600)
        self.assertFalse(checker.allow("bob@foo", ["everyone@no-domain", "everyone@bar"]))

    def test_groups(self):
        self.assertEqual(self.checker.groups("bob"), ["beatles"])
        self.assertEqual(self.checker.groups("nobody"), [])

    def test_from_cache_shares_cache(self):
        lookup = MagicMock(wraps=self.store)
        cache = GroupCache(lookup, 3600)
        first = PermChecker.from_cache(cache)
        second = PermChecker.from_cache(cache)

        self.assertTrue(first.allow("bob", ["beatles"]))
        self.assertTrue(second.allow("bob", ["beatles"]))
        self.assertIs(second.cache, cache)
        self.assertEqual(lookup.get_groups.call_count, 1)

        second.cache_evict_all()
        self.assertEqual(len(cache), 0)

    def test_needs_lookup_or_cache(self):
        self.assertRaises(ValueError, PermChecker)

    def test_decision_logged(self):
        with self.assertLogs("permcheck.checker", level="INFO") as cm:
            self.checker.allow("bob", ["beatles"])
            self.checker.allow("bob", ["wings"])
        self.assertIn("GRANTED", cm.output[0])
        self.assertIn("DENIED", cm.output[1])
        self.assertTrue(cm.output[1].startswith("WARNING"))

    def test_group_names_logged_before_lookup(self):
        with self.assertLogs("permcheck.checker", level="DEBUG") as cm:
            self.checker.allow("bob", ["everyone@elsewhere", "beatles"])
        self.assertIn("Looking up groups of bob for ACL names ['beatles']", cm.output[0])


class TestPermCheckerFromConfig(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        conf_path = os.path.join(self.tmpdir, "permcheck.conf")
        with open(conf_path, "w", encoding="utf-8") as f:
            f.write(f"[permcheck]\ncache_time = 60\ndomain = usso\ngroups_file = {GROUPS_FILE}\n")

        self.saved_env = dict(config.CONFIG_ENV)
        self.saved_files = dict(config.CONFIG_FILES)
        config.CONFIG_FILES = {"permcheck": [], "logging": []}
        config.CONFIG_ENV = {"permcheck": conf_path, "logging": ""}
        config.reset()
        checker_module._checker = None

    def tearDown(self):
        shutil.rmtree(self.tmpdir)
        config.CONFIG_ENV = self.saved_env
        config.CONFIG_FILES = self.saved_files
        config.reset()
        checker_module._checker = None

    def test_new_perm_checker(self):
        checker = new_perm_checker()
        self.assertEqual(checker.cache.cache_time, 60.0)
        self.assertTrue(checker.allow("bob", ["beatles"]))
        self.assertFalse(checker.allow("alice", ["beatles"]))

    def test_cache_time_override(self):
        checker = new_perm_checker(cache_time=5)
        self.assertEqual(checker.cache.cache_time, 5)

    def test_injected_lookup(self):
        checker = new_perm_checker(lookup=StaticGroupLookup({"carol": ["wings"]}))
        self.assertTrue(checker.allow("carol", ["wings"]))
        self.assertFalse(checker.allow("bob", ["beatles"]))

    def test_no_groups_file(self):
        config.CONFIG_ENV["permcheck"] = ""
        config.reset()
        self.assertRaises(ConfigError, new_perm_checker)

    def test_malformed_option(self):
        with open(config.CONFIG_ENV["permcheck"], "a", encoding="utf-8") as f:
            f.write("max_retries = often\n")
        config.reset()
        self.assertRaisesRegex(ConfigError, "max_retries", new_perm_checker)

    def test_singleton(self):
        checker = get_perm_checker()
        self.assertIs(get_perm_checker(), checker)

    def test_identity_client_strips_domain(self):
        ident = get_identity_client().declared_identity({"username": "alice@usso"})
        user = as_acl_user(ident)
        self.assertIsInstance(user, DomainStrippingIdentity)
        self.assertEqual(user.id(), "alice@usso")
        self.assertEqual(user.username(), "alice")
        self.assertEqual(user.groups(), ["admins", "beatles@elsewhere"])
        self.assertTrue(user.allow(["admins"]))


if __name__ == "__main__":
    unittest.main()
