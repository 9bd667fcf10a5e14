"""Allow `python -m sshkm`."""

from sshkm.cli import main

if __name__ == "__main__":
    main()
