"""objedit: edit-session engine for link, markdown, to-do list and composite objects."""

__version__ = "0.3.0"
