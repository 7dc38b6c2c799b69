"""
Configuration module for the registry browser.

Loads all configuration from environment variables with sensible defaults.
"""

import os


class Config:
    """
    Registry browser configuration from environment variables.

    Loads all configuration values from environment variables with sensible defaults.
    All settings can be overridden by setting the corresponding environment variable.
    """

    def __init__(self):
        """
        Initialize configuration from environment variables.

        Environment Variables:
            LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO
            FLASK_HOST: Server bind address. Default: 0.0.0.0
            FLASK_PORT: Server bind port. Default: 8080
            CACHE_DIR: Root of the per-tag artifact cache. Default: ./dockerfiles
            SCRATCH_DIR: Parent directory for scratch clones. Default: system temp dir
            INDEX_REPO: Git repository holding the index.d descriptions.
                Default: https://github.com/CentOS/container-index
            INDEX_BRANCH: Branch of the index repository. Default: master
            BUILD_API_URL: Base URL of the build-tracking API. Default: unset
            BUILD_API_NAMESPACE: Namespace queried on the build API. Default: default
            HTTP_TIMEOUT: Timeout for raw-file and API requests in seconds. Default: 30
            CLONE_TIMEOUT: Timeout for a single git clone in seconds. Default: 300
            REGISTRY_DOMAIN: Registry domain shown in pull commands. Default: registry.centos.org
            SYNC_ON_START: Run one cache sync pass before serving (1/0). Default: 0
            MAX_NAME_LENGTH: Maximum app/job id length. Default: 255
            MAX_TAG_LENGTH: Maximum tag length. Default: 128
        """
        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # Server
        self.FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
        self.FLASK_PORT = int(os.getenv("FLASK_PORT", "8080"))

        # Cache
        self.CACHE_DIR = os.getenv("CACHE_DIR", os.path.join(os.getcwd(), "dockerfiles"))
        self.SCRATCH_DIR = os.getenv("SCRATCH_DIR") or None

        # Upstream sources
        self.INDEX_REPO = os.getenv("INDEX_REPO", "https://github.com/CentOS/container-index")
        self.INDEX_BRANCH = os.getenv("INDEX_BRANCH", "master")
        self.BUILD_API_URL = os.getenv("BUILD_API_URL", "")
        self.BUILD_API_NAMESPACE = os.getenv("BUILD_API_NAMESPACE", "default")
        self.HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "30"))  # seconds
        self.CLONE_TIMEOUT = int(os.getenv("CLONE_TIMEOUT", "300"))  # seconds

        # Presentation
        self.REGISTRY_DOMAIN = os.getenv("REGISTRY_DOMAIN", "registry.centos.org")
        self.SYNC_ON_START = os.getenv("SYNC_ON_START", "0") == "1"

        # Validation limits
        self.MAX_NAME_LENGTH = int(os.getenv("MAX_NAME_LENGTH", "255"))
        self.MAX_TAG_LENGTH = int(os.getenv("MAX_TAG_LENGTH", "128"))

    def __repr__(self):
        """String representation for logging."""
        return (
            f"Config(LOG_LEVEL={self.LOG_LEVEL}, "
            f"FLASK_HOST={self.FLASK_HOST}, "
            f"FLASK_PORT={self.FLASK_PORT}, "
            f"CACHE_DIR={self.CACHE_DIR}, "
            f"INDEX_REPO={self.INDEX_REPO}, "
            f"BUILD_API_URL={self.BUILD_API_URL or '<unset>'})"
        )


# Global config instance
config = Config()
