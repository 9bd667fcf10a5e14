"""sshkm: keep one ssh-agent per login and its identities in sync with ~/.ssh."""

__version__ = "1.0.0"
