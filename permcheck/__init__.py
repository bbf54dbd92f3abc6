"""ACL evaluation for users of an identity service.

The package decides whether a user is admitted by an access control list
while keeping round trips to the identity service to a minimum:

- acl: Superficial evaluation of ACLs (user names and "everyone" keywords)
- groupcache: Time-bounded cache of the groups each user belongs to
- checker: Permission checker combining both
- identity, strip: Identity capabilities and domain stripping for identity
  clients
- lookup: The group lookup interface and a static, file-backed implementation
"""
