"""Database query functions for reviewcore.

This module provides async query functions for all database entities.
They form the store interface of the core: each function takes an
explicit session and leaves transaction boundaries to its caller.

- User lookup and creation
- Repository CRUD with soft delete and cascading purge
- Rule CRUD, filtering and bulk toggling
- Review CRUD and compare-and-swap status updates
- Finding batch insert and ordered retrieval
"""

from reviewcore.database.queries.finding import add_findings, list_findings
from reviewcore.database.queries.repository import (
    create_repository,
    deactivate_repository,
    find_repository_by_url,
    get_repository,
    list_repositories,
    purge_repository,
)
from reviewcore.database.queries.review import (
    add_review,
    compare_and_set_status,
    delete_review,
    get_review,
    list_review_ids_by_status,
    list_reviews,
    review_timings,
)
from reviewcore.database.queries.rule import (
    add_rule,
    delete_rule,
    find_rules,
    get_rule,
    get_rule_by_name,
    set_rules_enabled,
)
from reviewcore.database.queries.user import (
    create_user,
    get_user,
    get_user_by_email,
)

__all__ = [
    # User queries
    "create_user",
    "get_user",
    "get_user_by_email",
    # Repository queries
    "create_repository",
    "get_repository",
    "find_repository_by_url",
    "list_repositories",
    "deactivate_repository",
    "purge_repository",
    # Rule queries
    "add_rule",
    "get_rule",
    "get_rule_by_name",
    "find_rules",
    "set_rules_enabled",
    "delete_rule",
    # Review queries
    "add_review",
    "get_review",
    "list_reviews",
    "list_review_ids_by_status",
    "compare_and_set_status",
    "delete_review",
    "review_timings",
    # Finding queries
    "add_findings",
    "list_findings",
]
