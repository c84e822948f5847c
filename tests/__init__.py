"""
Test suites for the share link service.

- unit/: services and adapters against in-memory fakes
- contracts/: behaviour every repository or storage implementation shares
- property/: hypothesis checks of the link lifecycle
- integration/: runs against a real Redis server (skipped when unreachable)
"""
