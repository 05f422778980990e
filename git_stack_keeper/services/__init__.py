"""Services for git-stack-keeper."""
