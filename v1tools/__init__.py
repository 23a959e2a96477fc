"""Tools for First Edition UNIX on the PDP-11: loader files, filesystem images, permission listings, symbol and system call tables."""

__version__ = "0.1.0"