# Repositories package: the data access layer.
#
# Each module owns the SQL for one aggregate:
#
#   article_repository : article views, filtered pages, feed, favorites
#   comment_repository : comment views and writes
#   tag_repository     : insert-if-absent tags, popular tag aggregation
#   user_repository    : users, profile views, follows
#   views              : viewer-relative fragments shared by every read path
#
# Functions take an AsyncSession first and only flush; the request-scoped
# ``get_db`` dependency owns commit/rollback.
