# Services package.
#
# The article storage engine is split by concern and composed by the
# ArticleStore facade:
#
#   slug             - slug derivation (title + random suffix)
#   favorites        - favorite/unfavorite with the favorites_count mirror
#   updater          - version-checked (optimistic) article updates
#   article_query    - filtered, viewer-aware listing and its count
#   tags             - shared tag registry and article tag links
#   article_store    - the facade; owns one transaction per operation
#
# Collaborator services for the rest of the API:
#
#   user_service     - users, profiles and follows
#   comment_service  - append-only comments on an article
#
# Collaborator functions accept an AsyncSession as their first argument so
# the router layer controls the transaction boundary via ``get_db``.
