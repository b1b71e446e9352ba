"""Teacher and student directory: accounts, login and roster import."""
