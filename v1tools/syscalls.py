"""System call names and inline argument counts per UNIX version."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class SyscallInfo:
    """A system call's name and how many argument words follow the trap."""

    name: str | None
    numwords: int


V1_SYSCALLS: tuple[SyscallInfo, ...] = tuple(
    SyscallInfo(name, words)
    for name, words in (
        ("rele", 0), ("exit", 0), ("fork", 0), ("read", 2),
        ("write", 2), ("open", 2), ("close", 0), ("wait", 0),
        ("creat", 2), ("link", 2), ("unlink", 1), ("exec", 2),
        ("chdir", 1), ("time", 0), ("mkdir", 2), ("chmod", 2),
        ("chown", 2), ("break", 1), ("stat", 2), ("seek", 2),
        ("tell", 3), ("mount", 2), ("umount", 1), ("setuid", 1),
        ("getuid", 1), ("stime", 0), ("quit", 1), ("intr", 1),
        ("fstat", 2), ("cemt", 1), ("smdate", 1), ("stty", 2),
        ("gtty", 2), ("ilgins", 1),
    )
)

_BSD211_NAMES = (
    "indir", "exit", "fork", "read", "write", "open", "close", "wait4",
    None, "link", "unlink", "execv", "chdir", "fchdir", "mknod", "chmod",
    "chown", "chflags", "fchflags", "lseek", "getpid", "mount", "umount",
    "__sysctl", "getuid", "geteuid", "ptrace", "getppid", None, None, None,
    "sigaction", "sigprocmask", "access", "sigpending", "sigaltstack",
    "sync", "kill", "stat", "_getlogin", "lstat", "dup", "pipe", "setlogin",
    "profil", "setuid", "seteuid", "getgid", "getegid", "setgid", "setegid",
    "acct", "phys", "lock", "ioctl", "reboot", None, "symlink", "readlink",
    "execve", "umask", "chroot", "fstat", None, None, "pselect", "vfork",
    None, None, "sbrk", None, None, None, None, None, None, "vhangup",
    None, None, "getgroups", "setgroups", "getpgrp", "setpgrp", "setitimer",
    None, None, "getitimer", None, None, "getdtablesize", "dup2", None,
    "fcntl", "select", None, "fsync", "setpriority", "socket", "connect",
    "accept", "getpriority", "send", "recv", "sigreturn", "bind",
    "setsockopt", "listen", "sigsuspend", None, None, None, None,
    "old sigstack", "recvmsg", "sendmsg", None, "gettimeofday", "getrusage",
    "getsockopt", None, "readv", "writev", "settimeofday", "fchown",
    "fchmod", "recvfrom", None, None, "rename", "truncate", "ftruncate",
    "flock", None, "sendto", "shutdown", "socketpair", "mkdir", "rmdir",
    "utimes", None, "adjtime", "getpeername", None, None, "getrlimit",
    "setrlimit", "killpg", None, "setquota", "quota", "getsockname", None,
    "nostk", "fetchi", "ucall", "fperr",
)

BSD211_SYSCALLS: tuple[SyscallInfo, ...] = tuple(
    SyscallInfo(name, 0) for name in _BSD211_NAMES
)

DEFAULT_SYSCALLS = V1_SYSCALLS


def lookup(table: Sequence[SyscallInfo], number: int) -> SyscallInfo | None:
    """Return the named entry for ``number``, or None if there is none."""
    if 0 <= number < len(table):
        entry = table[number]
        if entry.name:
            return entry
    return None