"""Version information for git-stack-keeper."""

try:
    from git_stack_keeper._version import __version__
except ImportError:
    # Fallback for development without tags or when running from source
    __version__ = "0.0.0+unknown"
