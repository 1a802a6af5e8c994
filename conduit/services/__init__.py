# Services package: one function per use case.
#
#   user_service    : register, login, current user, profile update
#   profile_service : public profiles, follow / unfollow
#   article_service : list, feed, CRUD, favorite / unfavorite
#   comment_service : add, list, delete comments
#   tag_service     : popular tags (cached)
#   serializers     : ORM rows / repository views -> wire schemas
#
# Services validate ownership and existence, call the repositories and
# raise ``conduit.exceptions`` errors.  They take an AsyncSession first
# and never commit: the ``get_db`` dependency owns the transaction.
