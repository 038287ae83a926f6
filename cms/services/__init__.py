# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   activity_service  : append-only audit log writes and listings
#   article_service   : CRUD + filtered pagination for Article
#   category_service  : CRUD for Category
#   dashboard_service : aggregate statistics
#   settings_service  : key/value site settings (upsert)
#   user_service      : CRUD + profile for User
#   slugs             : slug normalisation shared by articles and categories
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
