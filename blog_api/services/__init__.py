# Services package.
#
# Each module exposes a focused set of async functions (or, for media,
# a small class) holding business logic for one concern:
#
#   post_service     : CRUD, slug-or-id lookup and listing for Post
#   category_service : CRUD for Category plus the "Uncategorized" sentinel
#   slug_service     : slug derivation and collision resolution
#   media_service    : image validation and upload to the image host
#
# Functions that touch the database take an AsyncSession as their first
# argument so the router layer controls the transaction boundary via the
# ``get_db`` dependency.
