"""FolderHub: hierarchical folder/file manager with a public and an admin explorer."""

__version__ = "0.1.0"
