# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   auth_service      : registration, login and token rotation
#   category_service  : CRUD + listings with post counts for Category
#   comment_service   : comments and one-level replies on a Post
#   like_service      : one like per user per Post
#   post_service      : CRUD, pagination, visibility and image moves for Post
#   tag_service       : find-or-create for Tag
#   user_service      : profile read / update and public profiles
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``ServiceError``
# subclasses from ``blog_api.exceptions``.
