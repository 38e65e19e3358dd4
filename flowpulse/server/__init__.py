"""Server plumbing shared by the HTTP entry points."""
