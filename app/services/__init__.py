# Services package.
#
# One module per aggregate, each a set of async functions taking an
# AsyncSession as their first argument:
#
#   article_service   : CRUD, votes, batch and threshold deletes for Article
#   category_service  : CRUD, duplicate merge and cascade delete for Category
#   comment_service   : append-only comments on Article
#   user_service      : CRUD and account deletion for User
#
# Plain CRUD flushes and leaves the commit to the ``get_db`` dependency.
# Multi-step workflows run through ``app.database.run_in_transaction`` and
# therefore expect a session that is not already inside a transaction.
