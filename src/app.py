#!/usr/bin/env python
"""This module is main entrypoint of the application"""
import sys

from iss_security.core import SecurityShell
from iss_security.helpers import load_iss_config
from iss_security.provider import IssProvider


def main():
    """
    Entrypoint to the application:
        - Load app config
        - Initialize IssProvider and run SecurityShell over stdin/stdout

    """
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config/iss_config.json"
    config = load_iss_config(config_path)
    provider = IssProvider(config=config)
    shell = SecurityShell(provider=provider, in_stream=sys.stdin, out_stream=sys.stdout)
    shell.run()


if __name__ == '__main__':
    main()
